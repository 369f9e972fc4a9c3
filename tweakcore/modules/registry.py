"""Module descriptors and the registry that owns them.

Responsibilities:
 - Keep feature modules in discovery order (registration order)
 - Reject duplicate names and bad enable flags at registration time
 - Compose the root schema: one subtree per module, then ``DebugFlags``
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from tweakcore.config.schema import RESERVED_NAMES, Kind, SchemaNode, boolean, group
from tweakcore.errors import ModuleRegistrationError

if TYPE_CHECKING:
    from .lifecycle import ModuleContext

DEBUG_FLAGS_KEY = "DebugFlags"

InitFn = Callable[["ModuleContext"], Any]
CleanupFn = Callable[["ModuleContext"], Any]
WorldFn = Callable[["ModuleContext", Any], Any]


class ModuleStatus(str, Enum):
    UNREGISTERED = "unregistered"
    CONSTRUCTED = "constructed"
    INITIALIZED = "initialized"
    CLEANED = "cleaned"
    DISABLED = "disabled"
    FAILED = "failed"


@dataclass(frozen=True)
class ModuleDescriptor:
    name: str
    schema: SchemaNode
    init: InitFn
    cleanup: Optional[CleanupFn] = None
    # relative to the module's own subtree; None = always enabled
    enabled_path: Optional[str] = None
    on_world: Optional[WorldFn] = None


class ModuleState:
    __slots__ = ("descriptor", "status", "context", "error")

    def __init__(self, descriptor: ModuleDescriptor):
        self.descriptor = descriptor
        self.status = ModuleStatus.UNREGISTERED
        self.context: Optional["ModuleContext"] = None
        self.error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def enabled(self) -> bool:
        return self.status not in (
            ModuleStatus.UNREGISTERED,
            ModuleStatus.DISABLED,
        )

    @property
    def initialized(self) -> bool:
        return self.status is ModuleStatus.INITIALIZED


class ModuleRegistry:
    def __init__(self) -> None:
        self._modules: Dict[str, ModuleDescriptor] = {}

    def register_module(
        self,
        name: str,
        schema: SchemaNode,
        enabled_path: Optional[str],
        init: InitFn,
        cleanup: Optional[CleanupFn] = None,
        on_world: Optional[WorldFn] = None,
    ) -> ModuleDescriptor:
        if not isinstance(name, str) or not name or "." in name:
            raise ModuleRegistrationError(f"invalid module name: {name!r}")
        if (
            name == DEBUG_FLAGS_KEY
            or name in RESERVED_NAMES
            or name.startswith("_")
        ):
            raise ModuleRegistrationError(f"'{name}' is reserved")
        if name in self._modules:
            raise ModuleRegistrationError(f"Duplicate module name: {name}")
        if not isinstance(schema, SchemaNode) or not schema.is_group:
            raise ModuleRegistrationError(
                f"schema of '{name}' must be a group node"
            )
        if enabled_path is not None:
            flag = schema.find(enabled_path)
            if flag is None or flag.kind is not Kind.BOOLEAN:
                raise ModuleRegistrationError(
                    f"enabled_path '{enabled_path}' of '{name}' is not a "
                    "boolean leaf of its schema"
                )
        desc = ModuleDescriptor(
            name=name,
            schema=schema,
            init=init,
            cleanup=cleanup,
            enabled_path=enabled_path,
            on_world=on_world,
        )
        self._modules[name] = desc
        return desc

    def get(self, name: str) -> ModuleDescriptor:
        desc = self._modules.get(name)
        if desc is None:
            raise KeyError(f"Module '{name}' not registered")
        return desc

    def names(self) -> List[str]:
        return list(self._modules)

    def descriptors(self) -> List[ModuleDescriptor]:
        return list(self._modules.values())

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def schema(self) -> SchemaNode:
        """Root schema: module subtrees in discovery order, then debug flags."""
        children = [(d.name, d.schema) for d in self._modules.values()]
        flags = group(
            [
                (d.name, boolean(False, f"Verbose logging for {d.name}"))
                for d in self._modules.values()
            ],
            "Debug logging per module",
        )
        children.append((DEBUG_FLAGS_KEY, flags))
        return group(children)


__all__ = [
    "DEBUG_FLAGS_KEY",
    "ModuleDescriptor",
    "ModuleRegistry",
    "ModuleState",
    "ModuleStatus",
]
