"""Unit tests for certmanager.services.shutdown (shutdown coordinator)."""

from __future__ import annotations

import signal
import threading
import time
from unittest.mock import MagicMock, patch

from certmanager.services.shutdown import ShutdownCoordinator

# ---------------------------------------------------------------------------
# TestShutdownCoordinator
# ---------------------------------------------------------------------------


class TestShutdownCoordinator:
    def test_is_shutting_down_starts_false(self):
        sc = ShutdownCoordinator()
        assert sc.is_shutting_down is False

    def test_initiate_sets_flag(self):
        sc = ShutdownCoordinator()
        sc.initiate()
        assert sc.is_shutting_down is True

    def test_double_initiate_is_idempotent(self):
        sc = ShutdownCoordinator()
        sc.initiate()
        sc.initiate()
        assert sc.is_shutting_down is True

    def test_track_increments_decrements(self):
        sc = ShutdownCoordinator()
        assert sc.in_flight_count == 0
        with sc.track("reconcile_pass"):
            assert sc.in_flight_count == 1
        assert sc.in_flight_count == 0

    def test_track_decrements_on_error(self):
        sc = ShutdownCoordinator()
        try:
            with sc.track("reconcile_pass"):
                raise RuntimeError("pass crashed")
        except RuntimeError:
            pass
        assert sc.in_flight_count == 0

    def test_shutdown_waits_for_tracked(self):
        sc = ShutdownCoordinator(graceful_timeout=5)
        completed = threading.Event()

        def slow_pass():
            with sc.track("reconcile_pass"):
                time.sleep(0.1)
            completed.set()

        t = threading.Thread(target=slow_pass)
        t.start()
        time.sleep(0.02)  # let it start
        sc.initiate()
        t.join(timeout=5)
        assert completed.is_set()
        assert sc.in_flight_count == 0

    def test_shutdown_timeout_expires_gracefully(self):
        sc = ShutdownCoordinator(graceful_timeout=0)
        started = threading.Event()
        stop = threading.Event()

        def blocking_pass():
            with sc.track("reconcile_pass"):
                started.set()
                stop.wait(timeout=5)

        t = threading.Thread(target=blocking_pass, daemon=True)
        t.start()
        started.wait(timeout=2)

        start_time = time.monotonic()
        sc.initiate()
        elapsed = time.monotonic() - start_time
        assert elapsed < 2

        stop.set()
        t.join(timeout=2)


# ---------------------------------------------------------------------------
# TestWait
# ---------------------------------------------------------------------------


class TestWait:
    def test_wait_returns_after_initiate(self):
        sc = ShutdownCoordinator()
        threading.Timer(0.05, sc.initiate).start()

        start_time = time.monotonic()
        sc.wait(poll_interval=0.01)
        assert time.monotonic() - start_time < 2
        assert sc.is_shutting_down is True

    def test_wait_returns_immediately_when_done(self):
        sc = ShutdownCoordinator()
        sc.initiate()
        sc.wait(poll_interval=0.01)


# ---------------------------------------------------------------------------
# TestSignals
# ---------------------------------------------------------------------------


class TestSignals:
    def test_register_signals(self):
        sc = ShutdownCoordinator()
        with patch("certmanager.services.shutdown.signal.signal") as mock_signal:
            sc.register_signals()

        registered = {c.args[0] for c in mock_signal.call_args_list}
        assert registered == {signal.SIGTERM, signal.SIGINT}

    def test_register_signals_outside_main_thread(self):
        sc = ShutdownCoordinator()
        with patch(
            "certmanager.services.shutdown.signal.signal",
            side_effect=ValueError("signal only works in main thread"),
        ):
            sc.register_signals()  # should not raise

    def test_signal_handler_initiates_shutdown(self):
        sc = ShutdownCoordinator()
        sc._signal_handler(signal.SIGTERM, None)
        sc.wait(poll_interval=0.01)
        assert sc.is_shutting_down is True

    def test_reload_signal_calls_callback(self):
        sc = ShutdownCoordinator()
        callback = MagicMock()
        with patch("certmanager.services.shutdown.signal.signal") as mock_signal:
            sc.register_reload_signal(callback)

        signum, handler = mock_signal.call_args.args
        assert signum == signal.SIGHUP
        handler(signal.SIGHUP, None)
        callback.assert_called_once_with()
        assert sc.is_shutting_down is False
