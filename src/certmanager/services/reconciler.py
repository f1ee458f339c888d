"""Reconciler: turn lifecycle statuses into ACME client actions.

========  =======  =========================================
Status    Action   Postcondition
========  =======  =========================================
missing   issue    record created, artifacts on disk
expired   renew    ``issued_at`` / ``renew_after`` refreshed
unused    revoke   record and local directory deleted
valid     --       --
========  =======  =========================================

Revocations always complete before any issue or renew starts.  Every
action runs independently: a failure is recorded as a
:class:`~certmanager.models.ActionOutcome` and the remaining domains
are still processed.

Actions are submitted to a single-worker executor because the ACME
client is not assumed to be safe for concurrent invocation.  Set
``concurrent=True`` only when it is.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from certmanager.core.errors import (
    AcmeClientError,
    DomainActionError,
    IssuanceError,
    RenewalError,
    RevocationError,
)
from certmanager.core.types import ActionResult, ActionType, LifecycleStatus
from certmanager.models import ActionOutcome

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from certmanager.acme import AcmeClient
    from certmanager.models import Domain

log = logging.getLogger(__name__)

_ERRORS: dict[ActionType, type[DomainActionError]] = {
    ActionType.ISSUE: IssuanceError,
    ActionType.RENEW: RenewalError,
    ActionType.REVOKE: RevocationError,
}


class DomainLocks:
    """Registry of one lock per domain.

    Held around every issue / renew / revoke and every deployment read
    of the same domain's local artifacts.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock(self, domain: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(domain, threading.Lock())


@dataclass(frozen=True)
class ReconcileOptions:
    """Which actions a pass may take.

    ``force_issue`` / ``force_renew`` also act on ``valid`` domains.
    ``dry_run_revoke`` reports revocations without performing them.
    """

    issue: bool = True
    renew: bool = True
    revoke: bool = True
    force_issue: bool = False
    force_renew: bool = False
    dry_run_revoke: bool = False


def select_action(
    status: LifecycleStatus,
    options: ReconcileOptions,
) -> ActionType | None:
    """Return the action for one classified domain, or None."""
    if status is LifecycleStatus.UNUSED:
        return ActionType.REVOKE if options.revoke else None
    if status is LifecycleStatus.MISSING:
        return ActionType.ISSUE if options.issue else None
    if status is LifecycleStatus.EXPIRED and options.renew:
        return ActionType.RENEW
    if options.force_renew and options.renew:
        return ActionType.RENEW
    if options.force_issue and options.issue:
        return ActionType.ISSUE
    return None


class Reconciler:
    """Drive the ACME client towards the desired certificate set.

    Parameters
    ----------
    acme:
        ACME client adapter.
    primary_domain:
        The configured main domain; never revoked.
    locks:
        Per-domain lock registry shared with the deployer.
    concurrent:
        Allow several ACME actions at once.
    max_workers:
        Executor size when *concurrent* is set.

    """

    def __init__(
        self,
        acme: AcmeClient,
        primary_domain: str,
        locks: DomainLocks,
        *,
        concurrent: bool = False,
        max_workers: int = 4,
    ) -> None:
        self._acme = acme
        self._primary_domain = primary_domain
        self._locks = locks
        self._workers = max_workers if concurrent else 1

    def plan(
        self,
        domains: Iterable[Domain],
        statuses: Mapping[str, LifecycleStatus],
        options: ReconcileOptions,
    ) -> list[tuple[Domain, ActionType]]:
        """Return the actions of a pass, revocations first.

        Domains without a status (not classified this pass) are left
        alone.
        """
        revocations: list[tuple[Domain, ActionType]] = []
        updates: list[tuple[Domain, ActionType]] = []
        for domain in domains:
            status = statuses.get(domain.name)
            if status is None:
                continue
            action = select_action(status, options)
            if action is ActionType.REVOKE:
                revocations.append((domain, action))
            elif action is not None:
                updates.append((domain, action))
        return revocations + updates

    def reconcile(
        self,
        domains: Iterable[Domain],
        statuses: Mapping[str, LifecycleStatus],
        options: ReconcileOptions,
    ) -> list[ActionOutcome]:
        """Run every planned action and collect the outcomes."""
        planned = self.plan(domains, statuses, options)
        if not planned:
            log.info("No certificate actions required")
            return []

        revocations = [p for p in planned if p[1] is ActionType.REVOKE]
        updates = [p for p in planned if p[1] is not ActionType.REVOKE]

        outcomes: list[ActionOutcome] = []
        with ThreadPoolExecutor(
            max_workers=self._workers,
            thread_name_prefix="acme-action",
        ) as pool:
            for phase in (revocations, updates):
                futures = [
                    pool.submit(self.run_action, domain, action, options=options)
                    for domain, action in phase
                ]
                outcomes.extend(f.result() for f in futures)
        return outcomes

    def run_action(
        self,
        domain: Domain,
        action: ActionType,
        *,
        options: ReconcileOptions | None = None,
    ) -> ActionOutcome:
        """Run one action for one domain; never raises."""
        options = options or ReconcileOptions()
        extra = {"domain": domain.name}

        if action is ActionType.REVOKE:
            if domain.is_primary or domain.name == self._primary_domain:
                log.info("Primary domain is never revoked", extra=extra)
                return ActionOutcome(domain.name, action, ActionResult.SKIPPED)
            if options.dry_run_revoke:
                log.info("Would revoke unused certificate", extra=extra)
                return ActionOutcome(domain.name, action, ActionResult.DRY_RUN)

        call = {
            ActionType.ISSUE: self._acme.issue,
            ActionType.RENEW: self._acme.renew,
            ActionType.REVOKE: self._acme.revoke,
        }[action]

        with self._locks.lock(domain.name):
            try:
                call(domain.name)
            except AcmeClientError as exc:
                error = _ERRORS[action](domain.name, exc.detail)
                if exc.retryable:
                    log.warning("%s; retrying next pass", error, extra=extra)
                else:
                    log.error("%s", error, extra=extra)  # noqa: TRY400
                return ActionOutcome(
                    domain.name,
                    action,
                    ActionResult.FAILED,
                    str(error),
                    retryable=exc.retryable,
                )
            except Exception as exc:
                log.exception("Unexpected error during %s", action.value, extra=extra)
                error = _ERRORS[action](domain.name, repr(exc))
                return ActionOutcome(domain.name, action, ActionResult.FAILED, str(error))

        log.info("Certificate %s succeeded", action.value, extra=extra)
        return ActionOutcome(domain.name, action, ActionResult.SUCCEEDED)
