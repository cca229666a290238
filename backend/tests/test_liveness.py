"""
Tests for the liveness guard, its leases and the platform backends.

Validates:
- Every acquired lease is released exactly once
- A late release never touches an expired lease, only reaps its helper
- Platform refusal degrades instead of failing
- Backend selection and inhibitor command lines
"""

import subprocess

import pytest

from conftest import FakeLivenessBackend
from mediawatch.liveness import (
    CaffeinateBackend,
    LivenessError,
    LivenessGuard,
    NullBackend,
    SystemdInhibitBackend,
    select_backend,
)
from mediawatch.liveness import backends as backends_module


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


# ============================================================================
# Leases
# ============================================================================

class TestLivenessLease:

    def test_hold_releases_on_exit(self):
        backend = FakeLivenessBackend()
        guard = LivenessGuard(backend=backend, timeout=10.0)

        with guard.hold() as lease:
            assert lease.is_held

        assert lease.released
        assert backend.acquired == 1
        assert backend.released == 1

    def test_hold_releases_on_exception(self):
        backend = FakeLivenessBackend()
        guard = LivenessGuard(backend=backend)

        with pytest.raises(RuntimeError):
            with guard.hold():
                raise RuntimeError("sweep blew up")

        assert backend.released == 1

    def test_release_is_idempotent(self):
        backend = FakeLivenessBackend()
        lease = LivenessGuard(backend=backend).acquire()

        assert lease.release() is True
        assert lease.release() is False
        assert backend.released == 1

    def test_expired_lease_not_released(self):
        clock = FakeClock()
        backend = FakeLivenessBackend()
        lease = LivenessGuard(backend=backend, timeout=10.0, clock=clock).acquire()

        clock.now += 10.0

        assert lease.expired
        assert not lease.is_held
        assert lease.release() is False
        assert backend.released == 0
        assert backend.reaped == 1

    def test_expired_lease_reaped_only_once(self):
        clock = FakeClock()
        backend = FakeLivenessBackend()
        lease = LivenessGuard(backend=backend, timeout=10.0, clock=clock).acquire()

        clock.now += 30.0
        lease.release()
        lease.release()

        assert backend.reaped == 1
        assert backend.released == 0

    def test_late_release_does_not_affect_newer_lease(self):
        clock = FakeClock()
        backend = FakeLivenessBackend()
        guard = LivenessGuard(backend=backend, timeout=10.0, clock=clock)

        stale = guard.acquire()
        clock.now += 15.0
        fresh = guard.acquire()

        stale.release()

        assert fresh.is_held
        assert backend.released == 0

    def test_refusal_yields_degraded_lease(self, caplog):
        backend = FakeLivenessBackend(refuse=True)
        guard = LivenessGuard(backend=backend)

        with caplog.at_level("WARNING"):
            lease = guard.acquire()

        assert lease.degraded
        assert not lease.is_held
        assert lease.release() is False
        assert backend.reaped == 0
        assert "continuing without it" in caplog.text

    def test_backend_release_failure_is_logged(self, caplog):
        class BrokenRelease(FakeLivenessBackend):
            def release(self, handle):
                raise OSError("inhibitor already gone")

        lease = LivenessGuard(backend=BrokenRelease()).acquire()

        with caplog.at_level("WARNING"):
            assert lease.release() is False

        assert "Failed to release" in caplog.text

    @pytest.mark.parametrize("timeout", [0, -1.5])
    def test_timeout_must_be_positive(self, timeout):
        with pytest.raises(ValueError):
            LivenessGuard(timeout=timeout)

    def test_default_backend_is_null(self):
        assert isinstance(LivenessGuard().backend, NullBackend)


# ============================================================================
# Backends
# ============================================================================

class TestBackends:

    def test_systemd_command(self):
        command = SystemdInhibitBackend().build_command(10, "mediawatch sweep")

        assert command[0] == "systemd-inhibit"
        assert "--what=sleep:idle" in command
        assert "--why=mediawatch sweep" in command
        assert command[-2:] == ["sleep", "10"]

    def test_caffeinate_command(self):
        assert CaffeinateBackend().build_command(7, "x") == ["caffeinate", "-i", "-t", "7"]

    def test_acquire_rounds_timeout_up(self, monkeypatch):
        launched = []

        class FakePopen:
            def __init__(self, command, **kwargs):
                launched.append(command)

        monkeypatch.setattr(backends_module.subprocess, "Popen", FakePopen)

        CaffeinateBackend().acquire(2.2, "x")

        assert launched == [["caffeinate", "-i", "-t", "3"]]

    def test_missing_executable_raises_liveness_error(self, monkeypatch):
        def missing(*args, **kwargs):
            raise FileNotFoundError("caffeinate")

        monkeypatch.setattr(backends_module.subprocess, "Popen", missing)

        with pytest.raises(LivenessError):
            CaffeinateBackend().acquire(1, "x")

    def test_release_terminates_running_process(self):
        class FakeProcess:
            def __init__(self):
                self.terminated = False

            def poll(self):
                return None

            def terminate(self):
                self.terminated = True

            def wait(self, timeout=None):
                return 0

        proc = FakeProcess()
        SystemdInhibitBackend().release(proc)

        assert proc.terminated

    def test_release_kills_unresponsive_process(self):
        class StuckProcess:
            killed = False

            def poll(self):
                return None

            def terminate(self):
                pass

            def wait(self, timeout=None):
                if timeout is not None and not self.killed:
                    raise subprocess.TimeoutExpired("sleep", timeout)
                return -9

            def kill(self):
                self.killed = True

        proc = StuckProcess()
        SystemdInhibitBackend().release(proc)

        assert proc.killed

    def test_release_skips_finished_process(self):
        class Finished:
            def poll(self):
                return 0

            def terminate(self):
                raise AssertionError("should not terminate a finished process")

        SystemdInhibitBackend().release(Finished())

    def test_reap_skips_finished_process(self):
        class Finished:
            def poll(self):
                return 0

            def wait(self, timeout=None):
                raise AssertionError("should not wait on a finished process")

            def terminate(self):
                raise AssertionError("should not terminate a finished process")

        SystemdInhibitBackend().reap(Finished())

    def test_reap_lets_helper_exit_on_its_own(self):
        class Exiting:
            waited = None

            def poll(self):
                return None

            def wait(self, timeout=None):
                self.waited = timeout
                return 0

            def terminate(self):
                raise AssertionError("should not terminate a helper that exits")

        proc = Exiting()
        CaffeinateBackend().reap(proc, grace=0.5)

        assert proc.waited == 0.5

    def test_reap_stops_helper_outliving_grace(self):
        class Lingering:
            terminated = False

            def poll(self):
                return None

            def wait(self, timeout=None):
                if not self.terminated:
                    raise subprocess.TimeoutExpired("sleep", timeout)
                return -15

            def terminate(self):
                self.terminated = True

        proc = Lingering()
        SystemdInhibitBackend().reap(proc)

        assert proc.terminated


# ============================================================================
# Selection
# ============================================================================

class TestSelectBackend:

    def test_named(self):
        assert isinstance(select_backend("systemd"), SystemdInhibitBackend)
        assert isinstance(select_backend("caffeinate"), CaffeinateBackend)
        assert isinstance(select_backend("none"), NullBackend)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown liveness backend"):
            select_backend("hibernate")

    def test_auto_prefers_systemd(self, monkeypatch):
        monkeypatch.setattr(
            backends_module.shutil, "which",
            lambda exe: "/usr/bin/systemd-inhibit" if exe == "systemd-inhibit" else None,
        )
        assert isinstance(select_backend("auto"), SystemdInhibitBackend)

    def test_auto_falls_back_to_null(self, monkeypatch):
        monkeypatch.setattr(backends_module.shutil, "which", lambda exe: None)
        assert isinstance(select_backend(None), NullBackend)
