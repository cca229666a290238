"""
Scoped liveness guarantee.

Each sweep gets its own LivenessLease. A lease has a hard expiry that does
not depend on the sweep finishing, and release() only lets go of a lease
that is still held, so a late release can never affect a newer lease.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from .backends import LivenessBackend, LivenessError, NullBackend

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 10.0


class LivenessLease:
    """Handle for one acquisition of the liveness guarantee."""

    def __init__(
        self,
        backend: LivenessBackend,
        handle: Optional[Any],
        timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._backend = backend
        self._handle = handle
        self._clock = clock
        self._lock = threading.Lock()
        self._released = False
        self.acquired_at = clock()
        self.expires_at = self.acquired_at + timeout

    @property
    def degraded(self) -> bool:
        """True when the platform refused the guarantee."""
        return self._handle is None

    @property
    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    @property
    def is_held(self) -> bool:
        return not self._released and not self.degraded and not self.expired

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """
        Release the guarantee if this lease still holds it.

        Idempotent. Returns True only for the call that actually released
        the platform handle.
        """
        with self._lock:
            if self._released:
                return False
            held = self.is_held
            self._released = True

        if not held:
            if not self.degraded:
                logger.debug("Liveness lease expired before release")
                try:
                    self._backend.reap(self._handle)
                except Exception as e:
                    logger.warning(f"Failed to reap expired liveness handle: {e}")
            return False

        try:
            self._backend.release(self._handle)
        except Exception as e:
            logger.warning(f"Failed to release liveness guarantee: {e}")
            return False

        logger.debug("Liveness lease released")
        return True


class LivenessGuard:
    """Hands out leases from a platform backend."""

    def __init__(
        self,
        backend: Optional[LivenessBackend] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if timeout <= 0:
            raise ValueError(f"Liveness timeout must be positive: {timeout}")
        self.backend = backend or NullBackend()
        self.timeout = timeout
        self._clock = clock

    def acquire(self, reason: str = "media sweep") -> LivenessLease:
        """
        Acquire a lease.

        Never raises for platform refusal: the lease comes back degraded and
        the caller carries on without the guarantee.
        """
        try:
            handle = self.backend.acquire(self.timeout, reason)
            logger.debug(f"Liveness acquired via {self.backend.name} for {self.timeout}s")
        except LivenessError as e:
            logger.warning(f"Liveness guarantee unavailable, continuing without it: {e}")
            handle = None
        return LivenessLease(self.backend, handle, self.timeout, clock=self._clock)

    @contextmanager
    def hold(self, reason: str = "media sweep") -> Iterator[LivenessLease]:
        lease = self.acquire(reason)
        try:
            yield lease
        finally:
            lease.release()
