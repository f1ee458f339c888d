"""Graceful shutdown coordinator.

Tracks the in-flight reconciliation pass and lets it finish (up to a
timeout) before the process exits.

Usage::

    coordinator = ShutdownCoordinator(graceful_timeout=300)
    coordinator.register_signals()
    coordinator.register_reload_signal(worker.trigger)

    with coordinator.track("reconcile_pass"):
        engine.run_pass()

    coordinator.wait()  # returns once shutdown has completed
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from types import FrameType

log = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Coordinates graceful shutdown by tracking in-flight operations.

    Parameters
    ----------
    graceful_timeout:
        Maximum seconds to wait for in-flight operations during shutdown.

    """

    def __init__(self, graceful_timeout: int = 30) -> None:
        self._graceful_timeout = graceful_timeout
        self._shutdown_flag = threading.Event()
        self._completed = threading.Event()
        self._in_flight = 0
        self._lock = threading.Lock()
        self._done = threading.Condition(self._lock)

    @property
    def is_shutting_down(self) -> bool:
        """True once :meth:`initiate` has been called."""
        return self._shutdown_flag.is_set()

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return self._in_flight

    @contextmanager
    def track(self, name: str) -> Generator[None, None, None]:
        """Context manager to track an in-flight operation."""
        if self._shutdown_flag.is_set():
            log.warning("Operation '%s' starting during shutdown", name)

        with self._lock:
            self._in_flight += 1

        try:
            yield
        finally:
            with self._done:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._done.notify_all()

    def initiate(self) -> None:
        """Begin graceful shutdown.

        Sets the shutdown flag and waits up to ``graceful_timeout``
        seconds for in-flight operations to complete.
        """
        if self._shutdown_flag.is_set():
            return

        self._shutdown_flag.set()
        log.info("Graceful shutdown initiated")

        with self._done:
            deadline = time.monotonic() + self._graceful_timeout
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    log.warning(
                        "Shutdown timeout expired with %d operations in flight",
                        self._in_flight,
                    )
                    break
                self._done.wait(timeout=remaining)

            if self._in_flight == 0:
                log.info("All in-flight operations completed")

        self._completed.set()

    def wait(self, poll_interval: float = 1.0) -> None:
        """Block until shutdown has completed.

        Polls so the main thread keeps handling signals.
        """
        while not self._completed.wait(timeout=poll_interval):
            pass

    def register_signals(self) -> None:
        """Register SIGTERM and SIGINT handlers to initiate shutdown.

        Must be called from the main thread.
        """
        try:
            signal.signal(signal.SIGTERM, self._signal_handler)
            signal.signal(signal.SIGINT, self._signal_handler)
        except (ValueError, OSError):
            log.debug("Could not register signal handlers (not main thread)")

    def register_reload_signal(self, callback: Callable[[], None]) -> None:
        """Call *callback* on SIGHUP (used to run a pass immediately)."""
        if not hasattr(signal, "SIGHUP"):
            log.debug("SIGHUP not available on this platform")
            return

        def handler(signum: int, frame: FrameType | None) -> None:  # noqa: ARG001
            log.info("Received SIGHUP, requesting an immediate update")
            callback()

        try:
            signal.signal(signal.SIGHUP, handler)
        except (ValueError, OSError):
            log.debug("Could not register SIGHUP handler (not main thread)")

    def _signal_handler(self, signum: int, frame: FrameType | None) -> None:  # noqa: ARG002
        sig_name = signal.Signals(signum).name
        log.info("Received %s, initiating graceful shutdown", sig_name)
        # Run in a thread to avoid blocking the signal handler
        threading.Thread(
            target=self.initiate,
            name="shutdown-coordinator",
            daemon=True,
        ).start()
