"""Service actions: start, stop, restart, status.

``start`` runs in the foreground (the container's main process),
records its pid in ``PID_FILE`` and runs a pass every
``UPDATE_INTERVAL`` seconds.  The other actions find it through that
file and talk to it with signals:

=========  ===========================================
stop       SIGTERM (SIGKILL with ``--force``)
restart    SIGHUP: run an update pass now
status     signal 0: is the recorded pid alive?
=========  ===========================================
"""

from __future__ import annotations

import logging
import os
import signal
import time
from pathlib import Path
from typing import TYPE_CHECKING

from certmanager.services.engine import PassOptions
from certmanager.services.reconciler import ReconcileOptions

if TYPE_CHECKING:
    import argparse

    from certmanager.config.settings import Settings

log = logging.getLogger(__name__)

_STOP_WAIT_SECONDS = 30
_STOP_POLL_SECONDS = 0.5


# ---------------------------------------------------------------------------
# PID file helpers
# ---------------------------------------------------------------------------


def read_pid(path: Path) -> int | None:
    """Return the pid recorded in *path*, or None if unreadable."""
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def running_pid(settings: Settings) -> int | None:
    """Return the pid of the running service, or None."""
    pid = read_pid(Path(settings.scheduler.pid_file))
    if pid is None or not is_alive(pid):
        return None
    return pid


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def run_start(settings: Settings, args: argparse.Namespace) -> int:
    """Run the service in the foreground until SIGTERM or SIGINT."""
    from certmanager.factory import create_engine  # noqa: PLC0415
    from certmanager.services.scheduler import UpdateWorker  # noqa: PLC0415
    from certmanager.services.shutdown import ShutdownCoordinator  # noqa: PLC0415

    existing = running_pid(settings)
    if existing is not None and existing != os.getpid():
        print(f"Certificate manager is already running (pid {existing})")  # noqa: T201
        return 1

    engine = create_engine(settings, prepare=True)
    coordinator = ShutdownCoordinator(graceful_timeout=settings.acme.timeout_seconds)
    worker = UpdateWorker(
        engine.run_pass,
        settings.scheduler.interval_seconds,
        shutdown=coordinator,
    )

    pid_file = Path(settings.scheduler.pid_file)
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(f"{os.getpid()}\n", encoding="utf-8")
    try:
        coordinator.register_signals()
        coordinator.register_reload_signal(worker.trigger)

        if not args.no_update:
            initial = PassOptions(
                reconcile=ReconcileOptions(revoke=not args.no_revoke),
                deploy=not args.no_deploy,
            )
            with coordinator.track("initial_pass"):
                report = engine.run_pass(initial)
            if report.failed:
                log.warning("Initial update finished with failures: %s", report.summary())

        worker.start()
        print("Certificate manager started. Press Ctrl+C to exit...")  # noqa: T201
        coordinator.wait()
        worker.stop(timeout=_STOP_WAIT_SECONDS)
    finally:
        if read_pid(pid_file) == os.getpid():
            pid_file.unlink(missing_ok=True)
    log.info("Certificate manager stopped")
    return 0


def run_stop(settings: Settings, args: argparse.Namespace) -> int:
    pid = running_pid(settings)
    if pid is None:
        print("Certificate manager is not running")  # noqa: T201
        return 1

    sig = signal.SIGKILL if args.force else signal.SIGTERM
    os.kill(pid, sig)
    deadline = time.monotonic() + _STOP_WAIT_SECONDS
    while is_alive(pid):
        if time.monotonic() >= deadline:
            print(f"Certificate manager (pid {pid}) is still stopping")  # noqa: T201
            return 1
        time.sleep(_STOP_POLL_SECONDS)

    if args.force:
        Path(settings.scheduler.pid_file).unlink(missing_ok=True)
    print("Certificate manager stopped")  # noqa: T201
    return 0


def run_restart(settings: Settings, args: argparse.Namespace) -> int:  # noqa: ARG001
    pid = running_pid(settings)
    if pid is None:
        print("Certificate manager is not running")  # noqa: T201
        return 1
    os.kill(pid, signal.SIGHUP)
    print(f"Update requested (pid {pid})")  # noqa: T201
    return 0


def run_status(settings: Settings, args: argparse.Namespace) -> int:
    pid = running_pid(settings)
    if args.simple:
        print("running" if pid is not None else "stopped")  # noqa: T201
    elif pid is not None:
        print(f"Certificate manager is running (pid {pid})")  # noqa: T201
    else:
        print("Certificate manager is stopped")  # noqa: T201
    return 0 if pid is not None else 1
