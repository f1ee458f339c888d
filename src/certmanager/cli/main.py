"""certificate-manager command-line entry point.

Usage::

    certificate-manager start
    certificate-manager update --no-revoke
    certificate-manager list --status=expired,missing --json
    certificate-manager revoke --confirm
    certificate-manager help deploy
    python -m certmanager status --simple

Every action is described by an :class:`Action` in :data:`ACTIONS`:
its description, its options, and the handler that runs it.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from certmanager.cli.commands import certificates, listing, service

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from certmanager.config.settings import Settings

    Handler = Callable[[Settings | None, argparse.Namespace], int]

log = logging.getLogger(__name__)

PROG = "certificate-manager"
DESCRIPTION = (
    "Issue, renew, revoke and deploy TLS certificates for Docker "
    "containers, driven by container labels."
)


def _get_version() -> str:
    from certmanager import __version__  # noqa: PLC0415

    return __version__


@dataclass(frozen=True)
class Option:
    """One command-line option of an action."""

    flags: tuple[str, ...]
    help: str
    kwargs: Mapping[str, Any] = field(default_factory=lambda: {"action": "store_true"})


@dataclass(frozen=True)
class Action:
    """Descriptor of a CLI action."""

    name: str
    description: str
    handler: Handler
    options: tuple[Option, ...] = ()
    needs_config: bool = True


def _run_help(settings: Settings | None, args: argparse.Namespace) -> int:  # noqa: ARG001
    parser, action_parsers = build_parser()
    topic = args.topic
    if topic is None:
        parser.print_help()
        return 0
    if topic not in action_parsers:
        _print_error(f"unknown action: {topic}")
        parser.print_help(sys.stderr)
        return 1
    action_parsers[topic].print_help()
    return 0


_FORCE = "-f", "--force"

ACTIONS: dict[str, Action] = {
    a.name: a
    for a in (
        Action(
            "start",
            "Start the certificate manager service.",
            service.run_start,
            (
                Option(("--no-update",), "do not update certificates before starting"),
                Option(
                    ("-D", "--no-deploy"),
                    "do not deploy any certificates before starting",
                ),
                Option(
                    ("-R", "--no-revoke"),
                    "do not revoke any unused certificates before starting",
                ),
            ),
        ),
        Action(
            "stop",
            "Stop the certificate manager service.",
            service.run_stop,
            (Option(_FORCE, "force the service to stop (SIGKILL)"),),
        ),
        Action(
            "restart",
            "Ask the running service to update certificates now.",
            service.run_restart,
        ),
        Action(
            "status",
            "Check the status of the certificate manager service.",
            service.run_status,
            (Option(("--simple",), "print the status as one word (running or stopped)"),),
        ),
        Action(
            "list",
            "List certificates managed by the certificate manager.",
            listing.run_list,
            (
                Option(("-H", "--no-header"), "do not print the header row"),
                Option(("--json",), "print the list as JSON (no header row)"),
                Option(("--csv",), "print the list as CSV"),
                Option(
                    ("--fields",),
                    f"comma-separated fields to print ({', '.join(listing.FIELDS)})",
                    {"type": listing.parse_fields, "metavar": "FIELD,..."},
                ),
                Option(
                    ("--status",),
                    f"only list certificates with a status in "
                    f"({', '.join(listing.STATUS_FILTERS)})",
                    {"type": listing.parse_status_filter, "metavar": "STATUS,..."},
                ),
            ),
        ),
        Action(
            "update",
            "Issue, renew, revoke and deploy certificates, whatever is needed.",
            certificates.run_update,
            (
                Option(("-D", "--no-deploy"), "do not deploy certificates to their containers"),
                Option(("-R", "--no-revoke"), "do not revoke unused certificates"),
            ),
        ),
        Action(
            "deploy",
            "Deploy certificates to their containers.",
            certificates.run_deploy,
            (Option(_FORCE, "copy certificates even if they are already deployed"),),
        ),
        Action(
            "revoke",
            "Revoke certificates for domains that are no longer managed.",
            certificates.run_revoke,
            (
                Option(
                    ("-c", "--confirm"),
                    "actually revoke and remove the certificates; "
                    "without this option only a dry run is performed",
                ),
            ),
        ),
        Action(
            "issue",
            "Issue certificates for all domains requested by containers.",
            certificates.run_issue,
            (Option(_FORCE, "reissue certificates even if they are valid"),),
        ),
        Action(
            "renew",
            "Renew certificates that are due for renewal.",
            certificates.run_renew,
            (Option(_FORCE, "renew certificates even if they are valid"),),
        ),
        Action(
            "help",
            "Show help for the certificate manager or one of its actions.",
            _run_help,
            needs_config=False,
        ),
    )
}


def build_parser() -> tuple[argparse.ArgumentParser, dict[str, argparse.ArgumentParser]]:
    """Build the top-level parser and one sub-parser per action."""
    actions_help = "\n".join(f"  {a.name:<9} {a.description}" for a in ACTIONS.values())
    parser = argparse.ArgumentParser(
        prog=PROG,
        description=DESCRIPTION,
        epilog=f"actions:\n{actions_help}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s v{_get_version()}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-q", "--quiet", action="store_true", help="disable all output")
    common.add_argument("-v", "--verbose", action="store_true", help="enable verbose output")

    subparsers = parser.add_subparsers(dest="action", metavar="<action>")
    action_parsers: dict[str, argparse.ArgumentParser] = {}
    for action in ACTIONS.values():
        sub = subparsers.add_parser(
            action.name,
            parents=[common],
            help=action.description,
            description=action.description,
        )
        for option in action.options:
            sub.add_argument(*option.flags, help=option.help, **option.kwargs)
        action_parsers[action.name] = sub

    action_parsers["help"].add_argument("topic", nargs="?", metavar="action")
    return parser, action_parsers


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"{PROG}: error: {message}", file=sys.stderr)  # noqa: T201


def run(action: Action, args: argparse.Namespace) -> int:
    """Load configuration (if needed) and run *action*; return an exit code."""
    from certmanager.config import load_settings  # noqa: PLC0415
    from certmanager.core.errors import CertManagerError, ConfigurationError  # noqa: PLC0415
    from certmanager.logging import configure_logging  # noqa: PLC0415

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    settings = None
    if action.needs_config:
        try:
            settings = load_settings(os.environ)
        except ConfigurationError as exc:
            _print_error(str(exc))
            return 1
        configure_logging(settings.logging, quiet=args.quiet, verbose=args.verbose)

    with contextlib.ExitStack() as stack:
        if args.quiet:
            devnull = stack.enter_context(open(os.devnull, "w", encoding="utf-8"))  # noqa: PTH123, SIM115
            stack.enter_context(contextlib.redirect_stdout(devnull))
        try:
            return action.handler(settings, args)
        except CertManagerError as exc:
            log.debug("Action %s failed", action.name, exc_info=True)
            _print_error(exc.detail)
            return 1


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Resolves the action, then runs it."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser, _ = build_parser()

    if not argv:
        parser.print_help(sys.stderr)
        sys.exit(1)

    if not argv[0].startswith("-") and argv[0] not in ACTIONS:
        _print_error(f"unknown action: {argv[0]}")
        parser.print_help(sys.stderr)
        sys.exit(1)

    args = parser.parse_args(argv)
    if args.action is None:
        parser.print_help(sys.stderr)
        sys.exit(1)

    sys.exit(run(ACTIONS[args.action], args))
