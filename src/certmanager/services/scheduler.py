"""Periodic update worker.

Daemon thread that runs a reconciliation pass on a fixed interval.
A failed pass is logged and the next one runs on schedule regardless;
there is no backoff and no circuit breaker.

Usage::

    worker = UpdateWorker(engine.run_pass, interval_seconds=86400)
    worker.start()
    ...
    worker.trigger()  # run a pass now
    ...
    worker.stop()
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from certmanager.models import PassReport
    from certmanager.services.shutdown import ShutdownCoordinator

log = logging.getLogger(__name__)


class UpdateWorker:
    """Run ``run_pass`` every *interval_seconds* on a daemon thread.

    Parameters
    ----------
    run_pass:
        Callable running one reconciliation pass.
    interval_seconds:
        Time between the end of one pass and the start of the next.
    shutdown:
        Optional coordinator; each pass is tracked so shutdown waits
        for it, and no pass starts once shutdown has begun.

    """

    def __init__(
        self,
        run_pass: Callable[[], PassReport],
        interval_seconds: int,
        *,
        shutdown: ShutdownCoordinator | None = None,
    ) -> None:
        self._run_pass = run_pass
        self._interval = interval_seconds
        self._shutdown = shutdown
        self._stop_event = threading.Event()
        self._wake = threading.Event()
        self._pass_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self.consecutive_failures = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background worker thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._wake.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="update-worker",
            daemon=True,
        )
        self._thread.start()
        log.info("Update worker started (interval=%ds)", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Signal the worker to stop and wait for it."""
        self._stop_event.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            log.info("Update worker stopped")

    def trigger(self) -> None:
        """Run a pass as soon as possible instead of waiting."""
        self._wake.set()

    def _stopping(self) -> bool:
        if self._stop_event.is_set():
            return True
        return self._shutdown is not None and self._shutdown.is_shutting_down

    def _run(self) -> None:
        while not self._stopping():
            self._wake.wait(timeout=self._interval)
            self._wake.clear()
            if self._stopping():
                break
            self.run_once()

    def run_once(self) -> PassReport | None:
        """Run one pass now, serialised with any other caller.

        Returns the report, or None if the pass raised.
        """
        with self._pass_lock:
            if self._shutdown is not None:
                with self._shutdown.track("reconcile_pass"):
                    return self._execute()
            return self._execute()

    def _execute(self) -> PassReport | None:
        try:
            report = self._run_pass()
        except Exception:
            self.consecutive_failures += 1
            log.exception(
                "Update pass failed (consecutive: %d)",
                self.consecutive_failures,
            )
            return None

        if report.failed:
            self.consecutive_failures += 1
            log.warning(
                "Update pass finished with failures (consecutive: %d): %s",
                self.consecutive_failures,
                report.summary(),
            )
        else:
            self.consecutive_failures = 0
        return report
