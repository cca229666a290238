"""
Platform backends for the liveness guarantee.

A backend keeps the host from suspending while a handle is held. Process
backends spawn an inhibitor bound to a bounded `sleep`, so the guarantee
expires on its own even if the caller never releases it.
"""

import logging
import math
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class LivenessError(Exception):
    """The platform refused or failed to grant a liveness guarantee."""

    pass


class LivenessBackend(ABC):
    name = "abstract"

    @abstractmethod
    def acquire(self, timeout: float, reason: str) -> Any:
        """
        Start holding the guarantee for at most `timeout` seconds.

        Returns:
            Opaque handle passed back to release()

        Raises:
            LivenessError: The guarantee could not be obtained
        """

    @abstractmethod
    def release(self, handle: Any) -> None:
        """Stop holding the guarantee identified by `handle`."""

    def reap(self, handle: Any) -> None:
        """Collect an expired handle's resources without cutting it short."""


class NullBackend(LivenessBackend):
    """Backend for hosts without a suspend inhibitor. Always succeeds."""

    name = "none"

    def acquire(self, timeout: float, reason: str) -> Any:
        return object()

    def release(self, handle: Any) -> None:
        pass


class ProcessInhibitBackend(LivenessBackend):
    """Holds the guarantee for as long as a helper process runs."""

    executable = ""

    def build_command(self, seconds: int, reason: str) -> List[str]:
        raise NotImplementedError

    def acquire(self, timeout: float, reason: str) -> subprocess.Popen:
        seconds = max(1, math.ceil(timeout))
        command = self.build_command(seconds, reason)
        try:
            return subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise LivenessError(f"Failed to start {self.executable}: {e}") from e

    def release(self, handle: subprocess.Popen) -> None:
        if handle.poll() is not None:
            return
        handle.terminate()
        try:
            handle.wait(timeout=2)
        except subprocess.TimeoutExpired:
            handle.kill()
            handle.wait()

    def reap(self, handle: subprocess.Popen, grace: float = 1.0) -> None:
        """
        Wait for an expired inhibitor to exit on its own.

        The helper sleeps for the timeout rounded up to whole seconds, so it
        can outlive its lease by under a second. Only a helper still running
        after `grace` is stopped.
        """
        if handle.poll() is not None:
            return
        try:
            handle.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            self.release(handle)


class SystemdInhibitBackend(ProcessInhibitBackend):
    """Linux: block sleep and idle through logind's inhibitor locks."""

    name = "systemd"
    executable = "systemd-inhibit"

    def build_command(self, seconds: int, reason: str) -> List[str]:
        return [
            self.executable,
            "--what=sleep:idle",
            "--who=mediawatch",
            f"--why={reason}",
            "--mode=block",
            "sleep",
            str(seconds),
        ]


class CaffeinateBackend(ProcessInhibitBackend):
    """macOS: prevent idle sleep with caffeinate's own timeout."""

    name = "caffeinate"
    executable = "caffeinate"

    def build_command(self, seconds: int, reason: str) -> List[str]:
        return [self.executable, "-i", "-t", str(seconds)]


_BACKENDS = {
    "systemd": SystemdInhibitBackend,
    "caffeinate": CaffeinateBackend,
    "none": NullBackend,
}


def select_backend(name: Optional[str] = "auto") -> LivenessBackend:
    """
    Build a backend by name.

    "auto" picks the first process backend whose executable is on PATH and
    falls back to NullBackend.
    """
    if name in (None, "auto"):
        for candidate in (SystemdInhibitBackend, CaffeinateBackend):
            if shutil.which(candidate.executable):
                return candidate()
        logger.info("No suspend inhibitor found on PATH; liveness guarantee disabled")
        return NullBackend()

    try:
        return _BACKENDS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown liveness backend '{name}'. Valid: auto, {', '.join(sorted(_BACKENDS))}"
        )
