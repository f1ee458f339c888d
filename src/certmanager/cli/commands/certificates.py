"""Certificate actions: update, issue, renew, revoke, deploy.

Each action is one reconciliation pass with a different set of
allowed steps.  The exit code is 1 when the pass reported failures.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from certmanager.core.types import ActionResult
from certmanager.services.engine import PassOptions
from certmanager.services.reconciler import ReconcileOptions

if TYPE_CHECKING:
    import argparse

    from certmanager.config.settings import Settings
    from certmanager.models import PassReport

log = logging.getLogger(__name__)


def _run_pass(settings: Settings, options: PassOptions, *, prepare: bool = True) -> PassReport:
    from certmanager.factory import create_engine  # noqa: PLC0415

    engine = create_engine(settings, prepare=prepare)
    return engine.run_pass(options)


def _print_report(report: PassReport) -> int:
    for outcome in report.failed_actions:
        print(f"FAILED {outcome.action.value} {outcome.domain}: {outcome.error}")  # noqa: T201
    for deployment in report.deployments:
        if deployment.reload_error:
            print(f"FAILED reload {deployment.container_id[:12]}: {deployment.reload_error}")  # noqa: T201
    for error in report.errors:
        print(f"FAILED {error}")  # noqa: T201
    print(report.summary())  # noqa: T201
    return 1 if report.failed else 0


def run_update(settings: Settings, args: argparse.Namespace) -> int:
    """Revoke, issue, renew and deploy, whatever is needed."""
    options = PassOptions(
        reconcile=ReconcileOptions(revoke=not args.no_revoke),
        deploy=not args.no_deploy,
    )
    return _print_report(_run_pass(settings, options))


def run_issue(settings: Settings, args: argparse.Namespace) -> int:
    options = PassOptions(
        reconcile=ReconcileOptions(
            renew=False,
            revoke=False,
            force_issue=args.force,
        ),
        deploy=False,
    )
    return _print_report(_run_pass(settings, options))


def run_renew(settings: Settings, args: argparse.Namespace) -> int:
    options = PassOptions(
        reconcile=ReconcileOptions(
            issue=False,
            revoke=False,
            force_renew=args.force,
        ),
        deploy=False,
    )
    return _print_report(_run_pass(settings, options))


def run_revoke(settings: Settings, args: argparse.Namespace) -> int:
    """Revoke unused certificates; a dry run unless ``--confirm``."""
    options = PassOptions(
        reconcile=ReconcileOptions(
            issue=False,
            renew=False,
            dry_run_revoke=not args.confirm,
        ),
        deploy=False,
    )
    report = _run_pass(settings, options, prepare=args.confirm)

    revocations = [a for a in report.actions if a.result is not ActionResult.SKIPPED]
    if not revocations and not report.failed:
        print("No unused certificates found.")  # noqa: T201
    pending = [a.domain for a in revocations if a.result is ActionResult.DRY_RUN]
    for domain in pending:
        print(f"Would revoke {domain}")  # noqa: T201
    if pending:
        print("Run again with --confirm to revoke and remove these certificates.")  # noqa: T201
    return _print_report(report)


def run_deploy(settings: Settings, args: argparse.Namespace) -> int:
    """Copy certificates into containers without touching the CA."""
    options = PassOptions(
        reconcile=ReconcileOptions(issue=False, renew=False, revoke=False),
        force_deploy=args.force,
    )
    return _print_report(_run_pass(settings, options, prepare=False))
