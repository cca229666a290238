"""
Liveness guarantee — keep the host awake for the duration of a sweep.

Public API:
    LivenessGuard — hands out scoped, self-expiring leases
    LivenessLease — one acquisition with release-if-held semantics
    select_backend — platform backend lookup (systemd, caffeinate, none)
"""

from .backends import (
    LivenessBackend,
    LivenessError,
    NullBackend,
    SystemdInhibitBackend,
    CaffeinateBackend,
    select_backend,
)
from .guard import LivenessGuard, LivenessLease, DEFAULT_TIMEOUT_SECONDS

__all__ = [
    "LivenessBackend",
    "LivenessError",
    "NullBackend",
    "SystemdInhibitBackend",
    "CaffeinateBackend",
    "select_backend",
    "LivenessGuard",
    "LivenessLease",
    "DEFAULT_TIMEOUT_SECONDS",
]
