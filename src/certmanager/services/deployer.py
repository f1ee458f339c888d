"""Deployer: keep certificate files inside containers in sync.

For one (domain, container) pair every artifact kind is examined:

1. not requested, present in the container   -> delete it (a change)
2. requested, no local file yet               -> the whole pair is
   blocked and nothing is touched
3. requested, absent or different in the container -> copy it,
   creating the certificate directory as root if needed (a change)
4. requested and byte-identical               -> nothing

A container whose pairs changed anything is reloaded exactly once,
after all of its domains have been processed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from certmanager.core.errors import (
    ContainerRuntimeError,
    DeploymentBlockedError,
    ReloadError,
)
from certmanager.core.types import ArtifactKind, DeploymentResult
from certmanager.models import ContainerDeployment, DeploymentOutcome

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from certmanager.models import CertificateRecord, ContainerTarget
    from certmanager.runtime import ContainerRuntime
    from certmanager.services.reconciler import DomainLocks
    from certmanager.services.reload import ReloadDispatcher

log = logging.getLogger(__name__)


class Deployer:
    """Copy local certificate artifacts into containers.

    Parameters
    ----------
    runtime:
        Container runtime adapter.
    locks:
        Per-domain lock registry shared with the reconciler, so a
        deployment never reads a half-written certificate.
    force:
        Copy requested artifacts even when the container already holds
        an identical file.

    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        locks: DomainLocks,
        *,
        force: bool = False,
    ) -> None:
        self._runtime = runtime
        self._locks = locks
        self._force = force

    # -- container file primitives ------------------------------------------

    def _exists(self, container_id: str, path: str) -> bool:
        return self._runtime.exec_in_container(container_id, ["test", "-f", path]).ok

    def _matches(self, container_id: str, remote: str, local: Path) -> bool:
        """True when *remote* exists and byte-matches *local*."""
        result = self._runtime.exec_in_container(container_id, ["cat", remote])
        if not result.ok:
            return False
        return result.stdout == local.read_bytes()

    def _remove(self, container_id: str, path: str) -> None:
        result = self._runtime.exec_in_container(
            container_id,
            ["rm", "-f", path],
            user="root",
        )
        if not result.ok:
            msg = f"cannot remove {path}: {result.error_text()}"
            raise ContainerRuntimeError(msg)

    def _ensure_directory(self, container: ContainerTarget) -> None:
        directory = container.certificate_directory
        if self._runtime.exec_in_container(container.id, ["test", "-d", directory]).ok:
            return
        log.info(
            "Certificate directory %s does not exist; creating it",
            directory,
            extra={"container": container.display_name},
        )
        result = self._runtime.exec_in_container(
            container.id,
            ["mkdir", "-p", directory],
            user="root",
        )
        if not result.ok:
            msg = f"cannot create {directory}: {result.error_text()}"
            raise ContainerRuntimeError(msg)

    # -- per pair -----------------------------------------------------------

    def deploy(
        self,
        domain: str,
        container: ContainerTarget,
        record: CertificateRecord | None,
    ) -> DeploymentOutcome:
        """Synchronise one domain's artifacts into one container.

        A failure part-way through still reports the kinds already
        copied or removed, so the container is reloaded for them.
        """
        extra = {"domain": domain, "container": container.display_name}
        copied: list[ArtifactKind] = []
        removed: list[ArtifactKind] = []
        with self._locks.lock(domain):
            try:
                return self._deploy(domain, container, record, copied, removed)
            except DeploymentBlockedError as exc:
                log.warning("%s", exc, extra=extra)
                return DeploymentOutcome(
                    domain,
                    container.id,
                    DeploymentResult.BLOCKED,
                    error=str(exc),
                )
            except ContainerRuntimeError as exc:
                if exc.retryable:
                    log.warning(
                        "Deployment interrupted, retrying next pass: %s",
                        exc.detail,
                        extra=extra,
                    )
                else:
                    log.error("Deployment failed: %s", exc.detail, extra=extra)  # noqa: TRY400
                return DeploymentOutcome(
                    domain,
                    container.id,
                    DeploymentResult.FAILED,
                    copied=tuple(copied),
                    removed=tuple(removed),
                    error=exc.detail,
                    retryable=exc.retryable,
                )
            except OSError as exc:
                log.error("Deployment failed: %s", exc, extra=extra)  # noqa: TRY400
                return DeploymentOutcome(
                    domain,
                    container.id,
                    DeploymentResult.FAILED,
                    copied=tuple(copied),
                    removed=tuple(removed),
                    error=str(exc),
                )

    def _deploy(
        self,
        domain: str,
        container: ContainerTarget,
        record: CertificateRecord | None,
        copied: list[ArtifactKind],
        removed: list[ArtifactKind],
    ) -> DeploymentOutcome:
        requested = container.requested_artifacts

        local: dict[ArtifactKind, Path] = {}
        missing: list[str] = []
        for kind in ArtifactKind:
            if kind not in requested:
                continue
            path = record.local_artifact(kind) if record is not None else None
            if path is None:
                missing.append(kind.value)
            else:
                local[kind] = path
        if missing:
            raise DeploymentBlockedError(domain, container.id, missing)

        extra = {"domain": domain, "container": container.display_name}

        for kind in ArtifactKind:
            if kind in requested:
                continue
            remote = container.remote_path(domain, kind)
            if self._exists(container.id, remote):
                log.info("Removing unrequested %s", remote, extra=extra)
                self._remove(container.id, remote)
                removed.append(kind)

        directory_ready = False
        for kind, path in local.items():
            remote = container.remote_path(domain, kind)
            if not self._force and self._matches(container.id, remote, path):
                continue
            if not directory_ready:
                self._ensure_directory(container)
                directory_ready = True
            log.info("Copying %s to %s", path.name, remote, extra=extra)
            self._runtime.copy_file_to_container(container.id, path, remote)
            copied.append(kind)

        if copied or removed:
            result = DeploymentResult.CHANGED
        else:
            log.debug("Certificate already deployed", extra=extra)
            result = DeploymentResult.UNCHANGED
        return DeploymentOutcome(
            domain,
            container.id,
            result,
            copied=tuple(copied),
            removed=tuple(removed),
        )

    # -- per container ------------------------------------------------------

    def deploy_container(
        self,
        container: ContainerTarget,
        inventory: Mapping[str, CertificateRecord],
        dispatcher: ReloadDispatcher,
    ) -> ContainerDeployment:
        """Deploy every domain of *container*, then reload at most once."""
        outcomes = tuple(
            self.deploy(domain, container, inventory.get(domain))
            for domain in container.domains
        )
        if not any(o.changed for o in outcomes):
            return ContainerDeployment(container.id, outcomes)

        try:
            reloaded = dispatcher.dispatch(container, container.reload_command)
        except ReloadError as exc:
            log.error("%s", exc, extra={"container": container.display_name})  # noqa: TRY400
            return ContainerDeployment(container.id, outcomes, reload_error=exc.detail)
        return ContainerDeployment(container.id, outcomes, reloaded=reloaded)

    def is_deployed(
        self,
        domain: str,
        container: ContainerTarget,
        record: CertificateRecord | None,
    ) -> bool:
        """True when every requested artifact is present and current.

        Read-only; used by ``list``.
        """
        if record is None:
            return False
        try:
            for kind in container.requested_artifacts:
                path = record.local_artifact(kind)
                remote = container.remote_path(domain, kind)
                if path is None or not self._matches(container.id, remote, path):
                    return False
        except (ContainerRuntimeError, OSError):
            log.debug(
                "Cannot check deployment",
                exc_info=True,
                extra={"domain": domain, "container": container.display_name},
            )
            return False
        return True
