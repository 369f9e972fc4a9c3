"""LifecycleManager: drives module init, world transitions and hot-reload.

Per-module state machine::

    UNREGISTERED -> CONSTRUCTED -> INITIALIZED -> CLEANED -> INITIALIZED
                 \\-> DISABLED                  \\-> FAILED

- ``start`` reads each module's enable flag once; disabled modules never
  leave DISABLED for the lifetime of the manager.
- init failures mark the module FAILED; hooks it registered before failing
  stay in place, and it is skipped by world-transition cleanup.
- ``world_transition`` cleans up INITIALIZED modules in reverse init order,
  then runs ``on_world`` (init order) for modules that define it.
- ``reload`` tears everything down, drops every hook owned by modules,
  re-reads the configuration and re-runs init. FAILED modules get a fresh
  attempt. Modules registered after ``start`` are constructed here, with
  their enable flag read from the reloaded configuration.

Every module callback is isolated: a failure is logged under the module's
tag, counted, and the sequence continues with the next module.
"""
from __future__ import annotations

import traceback
from typing import Any, Callable, Dict, List, Mapping, Optional

from tweakcore import metrics
from tweakcore.config.loader import ConfigState, CoreSettings, load_config
from tweakcore.config.migrator import CONFIG_LOG_TAG
from tweakcore.config.view import FrozenConfig
from tweakcore.errors import validate_error_type
from tweakcore.hooks.multiplexer import HookHandle, HookMultiplexer
from tweakcore.logutil import ModLogger, create_logger

from .registry import (
    DEBUG_FLAGS_KEY,
    ModuleDescriptor,
    ModuleRegistry,
    ModuleState,
    ModuleStatus,
)

CORE_LOG_TAG = "TweakCore"


class ModuleContext:
    """What a module sees: its config slice, its logger, and hook access."""

    def __init__(
        self,
        name: str,
        config: FrozenConfig,
        log: ModLogger,
        hooks: HookMultiplexer,
    ) -> None:
        self.name = name
        self.config = config
        self.log = log
        self._hooks = hooks
        self.handles: List[HookHandle] = []

    def hook(
        self,
        hook_id: str,
        callback: Callable[..., Any],
        when: Optional[Callable[..., bool]] = None,
    ) -> HookHandle:
        handle = self._hooks.register(hook_id, self.name, callback, when)
        self.handles.append(handle)
        return handle

    def unhook(self, handle: HookHandle) -> bool:
        if handle in self.handles:
            self.handles.remove(handle)
        return self._hooks.unregister(handle)


class LifecycleManager:
    def __init__(
        self,
        registry: ModuleRegistry,
        hooks: Optional[HookMultiplexer] = None,
        settings: Optional[CoreSettings] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.registry = registry
        self.hooks = hooks or HookMultiplexer()
        self.settings = settings or CoreSettings.from_env(environ)
        self._environ = environ
        self._states: Dict[str, ModuleState] = {}
        self._init_order: List[str] = []
        self._config_state: Optional[ConfigState] = None
        self._log = create_logger(CORE_LOG_TAG)

    # --- properties -----------------------------------------------------
    @property
    def started(self) -> bool:
        return self._config_state is not None

    @property
    def config(self) -> Optional[FrozenConfig]:
        return self._config_state.config if self._config_state else None

    @property
    def config_state(self) -> Optional[ConfigState]:
        return self._config_state

    @property
    def init_order(self) -> List[str]:
        return list(self._init_order)

    def state(self, name: str) -> ModuleState:
        return self._states[name]

    def status(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": st.name,
                "status": st.status.value,
                "enabled": st.enabled,
                "initialized": st.initialized,
                "hooks": len(self.hooks.handles_for(st.name)),
                "error": st.error,
            }
            for st in self._states.values()
        ]

    # --- lifecycle ------------------------------------------------------
    def start(self) -> ConfigState:
        """Load configuration, then construct and init enabled modules."""
        if self._config_state is not None:
            self._log.warning("start() called twice; use reload()")
            return self._config_state
        state = self._load()
        self._construct_new(state.config)
        for st in self._states.values():
            if st.status is ModuleStatus.CONSTRUCTED:
                self._init(st, state.config)
        self._log.info(
            "Loaded %d/%d modules", len(self._init_order), len(self._states)
        )
        return state

    def world_transition(self, world: Any = None) -> None:
        """Release per-world state, then run next-world logic."""
        self._cleanup_all()
        for name in self._init_order:
            st = self._states[name]
            if (
                st.status is ModuleStatus.CLEANED
                and st.descriptor.on_world is not None
            ):
                self._enter_world(st, world)

    def reload(self) -> ConfigState:
        """Hot-reload: tear down, re-read configuration, re-init.

        Not atomic across modules; each is torn down and rebuilt on its own.
        """
        if self._config_state is None:
            return self.start()
        self._cleanup_all()
        for st in self._states.values():
            if st.status is ModuleStatus.DISABLED:
                continue
            self.hooks.unregister_module(st.name)
            if st.context is not None:
                st.context.handles.clear()
        state = self._load()
        # modules registered since the last load read their flag now
        self._construct_new(state.config)
        self._init_order = []
        for st in self._states.values():
            if st.status is ModuleStatus.DISABLED:
                continue
            st.status = ModuleStatus.CONSTRUCTED
            st.error = None
            self._init(st, state.config)
        self._log.info("Reloaded %d modules", len(self._init_order))
        return state

    # --- internals ------------------------------------------------------
    def _construct_new(self, config: FrozenConfig) -> None:
        for desc in self.registry.descriptors():
            if desc.name in self._states:
                continue
            st = ModuleState(desc)
            self._states[desc.name] = st
            if not self._read_enabled(desc, config):
                st.status = ModuleStatus.DISABLED
                self._log.info("%s disabled in configuration", desc.name)
                continue
            st.status = ModuleStatus.CONSTRUCTED

    def _load(self) -> ConfigState:
        schema = self.registry.schema()
        state = load_config(
            schema,
            self.settings,
            environ=self._environ,
            log=create_logger(CONFIG_LOG_TAG),
        )
        self._config_state = state
        return state

    def _read_enabled(self, desc: ModuleDescriptor, config: FrozenConfig) -> bool:
        if desc.enabled_path is None:
            return True
        return bool(config[desc.name].get_path(desc.enabled_path, False))

    def _logger_for(self, name: str, config: FrozenConfig) -> ModLogger:
        debug = bool(config.get_path(f"{DEBUG_FLAGS_KEY}.{name}", False))
        return create_logger(name, debug)

    def _fail(self, st: ModuleState, phase: str, code: str, e: Exception) -> None:
        log = st.context.log if st.context else create_logger(st.name)
        st.error = f"{type(e).__name__}: {e}"
        log.error("%s failed: %s [%s]", phase, st.error, validate_error_type(code))
        log.debug("%s", traceback.format_exc())

    def _init(self, st: ModuleState, config: FrozenConfig) -> None:
        ctx = ModuleContext(
            st.name,
            config[st.name],
            self._logger_for(st.name, config),
            self.hooks,
        )
        st.context = ctx
        try:
            st.descriptor.init(ctx)
        except Exception as e:  # noqa: BLE001
            st.status = ModuleStatus.FAILED
            metrics.inc("module_init_failures_total", {"module": st.name})
            self._fail(st, "Init", "module-init-failed", e)
            return
        st.status = ModuleStatus.INITIALIZED
        self._init_order.append(st.name)
        ctx.log.debug("Initialized (%d hooks)", len(ctx.handles))

    def _cleanup_all(self) -> None:
        for name in reversed(self._init_order):
            st = self._states[name]
            if st.status is ModuleStatus.INITIALIZED:
                self._cleanup(st)

    def _cleanup(self, st: ModuleState) -> None:
        cleanup = st.descriptor.cleanup
        st.status = ModuleStatus.CLEANED
        if cleanup is None or st.context is None:
            return
        try:
            cleanup(st.context)
        except Exception as e:  # noqa: BLE001
            metrics.inc("module_cleanup_failures_total", {"module": st.name})
            self._fail(st, "Cleanup", "module-cleanup-failed", e)
            return
        st.context.log.debug("Cleaned up")

    def _enter_world(self, st: ModuleState, world: Any) -> None:
        try:
            st.descriptor.on_world(st.context, world)
        except Exception as e:  # noqa: BLE001
            st.status = ModuleStatus.FAILED
            metrics.inc("module_world_failures_total", {"module": st.name})
            self._fail(st, "World setup", "module-world-failed", e)
            return
        st.status = ModuleStatus.INITIALIZED


__all__ = ["LifecycleManager", "ModuleContext"]
