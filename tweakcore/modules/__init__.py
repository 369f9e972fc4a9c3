"""Modules package.

Feature modules register with a ``ModuleRegistry`` (schema subtree, enable
flag, init/cleanup callbacks); ``LifecycleManager`` drives them through
startup, world transitions and hot-reload.
"""
from __future__ import annotations

from .registry import (  # noqa: F401
    DEBUG_FLAGS_KEY,
    ModuleDescriptor,
    ModuleRegistry,
    ModuleState,
    ModuleStatus,
)
from .lifecycle import LifecycleManager, ModuleContext  # noqa: F401

__all__ = [
    "DEBUG_FLAGS_KEY",
    "ModuleDescriptor",
    "ModuleRegistry",
    "ModuleState",
    "ModuleStatus",
    "LifecycleManager",
    "ModuleContext",
]
