"""Hook multiplexing over a host that allows one subscription per event."""
from __future__ import annotations

from .multiplexer import (  # noqa: F401
    HookHandle,
    HookHost,
    HookMultiplexer,
    HookRegistration,
)
from .host import HostSubscriptionError, LocalHost  # noqa: F401

__all__ = [
    "HookHandle",
    "HookHost",
    "HookMultiplexer",
    "HookRegistration",
    "HostSubscriptionError",
    "LocalHost",
]
