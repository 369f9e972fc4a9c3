"""tweakcore: configuration migration and hook multiplexing for feature modules.

Typical wiring::

    registry = ModuleRegistry()
    registry.register_module("Feature", schema, "Enabled", init, cleanup)
    manager = LifecycleManager(registry, HookMultiplexer(host))
    manager.start()
"""
from __future__ import annotations

from tweakcore.hooks import HookMultiplexer, LocalHost  # noqa: F401
from tweakcore.modules import (  # noqa: F401
    LifecycleManager,
    ModuleContext,
    ModuleRegistry,
)

__all__ = [
    "HookMultiplexer",
    "LocalHost",
    "LifecycleManager",
    "ModuleContext",
    "ModuleRegistry",
]
