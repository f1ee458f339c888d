"""Reconciliation engine: one complete pass, start to finish.

::

    labels -> domain set -> inventory -> classify -> act -> deploy

The engine owns no timer and no state between passes.  Everything is
re-read from the container runtime and the ACME client store on every
call to :meth:`ReconciliationEngine.run_pass`, which makes a pass
safe to repeat.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from certmanager.core.errors import ContainerRuntimeError, TransientClassificationError
from certmanager.core.types import ActionResult
from certmanager.models import ContainerDeployment, PassReport
from certmanager.services.classifier import StatusClassifier, utcnow
from certmanager.services.deployer import Deployer
from certmanager.services.domains import build_domain_set
from certmanager.services.labels import LabelReader
from certmanager.services.reconciler import DomainLocks, Reconciler, ReconcileOptions
from certmanager.services.reload import ReloadDispatcher

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from certmanager.acme import AcmeClient
    from certmanager.config.settings import Settings
    from certmanager.core.types import LifecycleStatus
    from certmanager.models import CertificateRecord, ContainerTarget, Domain
    from certmanager.runtime import ContainerRuntime

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PassOptions:
    """What one pass is allowed to do."""

    reconcile: ReconcileOptions = field(default_factory=ReconcileOptions)
    deploy: bool = True
    force_deploy: bool = False


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of the managed state, used by ``list``."""

    containers: list[ContainerTarget]
    domains: list[Domain]
    inventory: dict[str, CertificateRecord]
    statuses: dict[str, LifecycleStatus]


class ReconciliationEngine:
    """Run reconciliation passes against an ACME client and a runtime.

    Parameters
    ----------
    settings:
        Fully built configuration.
    acme:
        ACME client adapter.
    runtime:
        Container runtime adapter.
    clock:
        Returns the current UTC time; injectable for tests.

    """

    def __init__(
        self,
        settings: Settings,
        acme: AcmeClient,
        runtime: ContainerRuntime,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self._runtime = runtime
        self._locks = DomainLocks()
        self._labels = LabelReader(runtime, settings.labels)
        self._classifier = StatusClassifier(acme, clock)
        self._reconciler = Reconciler(
            acme,
            settings.acme.primary_domain,
            self._locks,
            concurrent=settings.acme.concurrent,
            max_workers=settings.scheduler.max_workers,
        )
        self._dispatcher = ReloadDispatcher(
            runtime,
            settings.runtime.reload_timeout_seconds,
        )

    @property
    def primary_domain(self) -> str:
        return self._settings.acme.primary_domain

    # -- read-only ----------------------------------------------------------

    def discover(
        self,
        errors: list[str] | None = None,
    ) -> tuple[list[ContainerTarget], list[Domain]]:
        """Read container labels and build this pass's domain set.

        Containers that cannot be inspected are skipped and their
        errors appended to *errors*.
        """
        containers = self._labels.list_managed_containers(errors)
        return containers, build_domain_set(self.primary_domain, containers)

    def snapshot(self) -> Snapshot:
        """Classify every managed domain without acting on anything.

        Raises
        ------
        ContainerRuntimeError
            If the containers cannot be listed.
        TransientClassificationError
            If the certificate inventory cannot be read.

        """
        containers, domain_set = self.discover()
        inventory = self._classifier.load_inventory()
        domains = self._classifier.managed_domains(domain_set, inventory)
        statuses = self._classifier.classify_all(domains, inventory)
        return Snapshot(containers, domains, inventory, statuses)

    def is_deployed(
        self,
        domain: str,
        container: ContainerTarget,
        record: CertificateRecord | None,
    ) -> bool:
        return Deployer(self._runtime, self._locks).is_deployed(domain, container, record)

    # -- one pass -----------------------------------------------------------

    def run_pass(self, options: PassOptions | None = None) -> PassReport:
        """Run one full reconciliation pass and report what happened.

        Never raises for a per-domain or per-container failure.  A
        failure to list the containers or to read the inventory aborts
        the pass before any action, since the required set would be
        unknown.  When only some containers cannot be inspected the
        pass goes on without them, but revokes nothing: the domains
        those containers request are not in the required set.
        """
        options = options or PassOptions()
        report = PassReport()

        try:
            containers, domain_set = self.discover(report.errors)
        except ContainerRuntimeError as exc:
            log.error("Cannot list containers, skipping pass: %s", exc.detail)  # noqa: TRY400
            report.errors.append(exc.detail)
            return report

        reconcile_options = options.reconcile
        if report.errors and reconcile_options.revoke:
            log.warning(
                "%d container(s) could not be read; no certificate is revoked this pass",
                len(report.errors),
            )
            reconcile_options = replace(reconcile_options, revoke=False)

        try:
            inventory = self._classifier.load_inventory()
        except TransientClassificationError as exc:
            log.error("%s; skipping pass", exc.detail)  # noqa: TRY400
            report.errors.append(exc.detail)
            report.unclassified = [d.name for d in domain_set]
            return report

        domains = self._classifier.managed_domains(domain_set, inventory)
        report.statuses = self._classifier.classify_all(domains, inventory)
        report.actions = self._reconciler.reconcile(
            domains,
            report.statuses,
            reconcile_options,
        )

        if options.deploy:
            if any(a.result is ActionResult.SUCCEEDED for a in report.actions):
                try:
                    inventory = self._classifier.load_inventory()
                except TransientClassificationError as exc:
                    log.error("%s; skipping deployment", exc.detail)  # noqa: TRY400
                    report.errors.append(exc.detail)
                    return report
            report.deployments = self.deploy_all(
                containers,
                inventory,
                force=options.force_deploy,
            )

        log.info("Pass complete: %s", report.summary())
        return report

    def deploy_all(
        self,
        containers: list[ContainerTarget],
        inventory: Mapping[str, CertificateRecord],
        *,
        force: bool = False,
    ) -> list[ContainerDeployment]:
        """Deploy to every container concurrently, one task per container."""
        targets = [c for c in containers if c.domains]
        if not targets:
            return []
        deployer = Deployer(self._runtime, self._locks, force=force)
        workers = min(self._settings.scheduler.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="deploy") as pool:
            futures = [
                pool.submit(self._deploy_container, deployer, container, inventory)
                for container in targets
            ]
            return [f.result() for f in futures]

    def _deploy_container(
        self,
        deployer: Deployer,
        container: ContainerTarget,
        inventory: Mapping[str, CertificateRecord],
    ) -> ContainerDeployment:
        try:
            return deployer.deploy_container(container, inventory, self._dispatcher)
        except Exception as exc:
            log.exception(
                "Unexpected error deploying to container",
                extra={"container": container.display_name},
            )
            return ContainerDeployment(container.id, error=repr(exc))
