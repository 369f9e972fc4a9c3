"""HookMultiplexer: one host subscription per hook point, fanned out.

Features:
  - register(hook_id, module, callback, when=None) -> HookHandle
  - unregister(handle)
  - dispatch(hook_id, *args, **kwargs), driven by the host subscription
  - callback isolation (exceptions logged per module + counted, never
    propagated, callback stays registered)
  - registration changes requested during a dispatch are queued and applied
    once the outermost dispatch returns
    - metrics counters:
            hook_dispatch_total{hook}, hook_callback_errors_total{hook,module},
            hook_subscriptions_total{hook}, hook_subscribe_failures_total{hook}
      histogram: hook_dispatch_ms{hook}

The host is reached only through ``HookHost.subscribe``; a hook id is
subscribed the first time anything registers for it and never again. A
refused subscription is retried on the next registration for that hook id.
"""
from __future__ import annotations

import itertools
import traceback
from dataclasses import dataclass
from threading import RLock
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional, Protocol, Set, Tuple

from tweakcore import metrics
from tweakcore.errors import validate_error_type
from tweakcore.logutil import ModLogger, create_logger, get_logger

HOOKS_LOG_TAG = "TweakCore|Hooks"

Callback = Callable[..., Any]
Predicate = Callable[..., bool]
Dispatcher = Callable[..., int]


class HookHost(Protocol):  # pragma: no cover
    def subscribe(self, hook_id: str, dispatcher: Dispatcher) -> None:
        ...


@dataclass(frozen=True)
class HookHandle:
    """Opaque token returned by ``register``; only useful for removal."""

    hook_id: str
    module: str
    seq: int


@dataclass(frozen=True)
class HookRegistration:
    handle: HookHandle
    callback: Callback
    when: Optional[Predicate] = None


class HookMultiplexer:
    def __init__(
        self,
        host: Optional[HookHost] = None,
        log: Optional[ModLogger] = None,
    ) -> None:
        self._host = host
        self._log = log or create_logger(HOOKS_LOG_TAG)
        self._table: Dict[str, List[HookRegistration]] = {}
        self._subscribed: Set[str] = set()
        self._pending: List[Tuple[str, Any]] = []
        self._depth = 0
        self._seq = itertools.count(1)
        self._lock = RLock()

    # --- registration ---------------------------------------------------
    def register(
        self,
        hook_id: str,
        module: str,
        callback: Callback,
        when: Optional[Predicate] = None,
    ) -> HookHandle:
        handle = HookHandle(hook_id, module, next(self._seq))
        reg = HookRegistration(handle, callback, when)
        with self._lock:
            if self._depth:
                self._pending.append(("add", reg))
            else:
                self._add(reg)
        return handle

    def unregister(self, handle: HookHandle) -> bool:
        """Remove a registration; False if the handle is unknown."""
        with self._lock:
            if self._depth:
                known = self._is_live(handle)
                if known:
                    self._pending.append(("remove", handle))
                return known
            return self._remove(handle)

    def unregister_module(self, module: str) -> int:
        """Remove every registration owned by ``module``."""
        removed = 0
        for handle in self.handles_for(module):
            if self.unregister(handle):
                removed += 1
        return removed

    def retry_subscriptions(self) -> List[str]:
        """Retry host subscription for hook ids the host refused earlier."""
        with self._lock:
            pending = [h for h in self._table if h not in self._subscribed]
            return [h for h in pending if self._ensure_subscribed(h)]

    # --- dispatch -------------------------------------------------------
    def dispatch(self, hook_id: str, *args: Any, **kwargs: Any) -> int:
        """Invoke callbacks for ``hook_id`` in registration order.

        Returns how many callbacks ran to completion.
        """
        with self._lock:
            regs = list(self._table.get(hook_id, ()))
            self._depth += 1
        t0 = perf_counter()
        ok = 0
        try:
            for reg in regs:
                if self._invoke(hook_id, reg, args, kwargs):
                    ok += 1
        finally:
            with self._lock:
                self._depth -= 1
                if self._depth == 0 and self._pending:
                    self._apply_pending()
        metrics.inc("hook_dispatch_total", {"hook": hook_id})
        metrics.observe(
            "hook_dispatch_ms", (perf_counter() - t0) * 1000, {"hook": hook_id}
        )
        return ok

    # --- introspection --------------------------------------------------
    def hook_ids(self) -> List[str]:
        return list(self._table)

    def registrations(self, hook_id: str) -> List[HookHandle]:
        return [r.handle for r in self._table.get(hook_id, ())]

    def handles_for(self, module: str) -> List[HookHandle]:
        out = [
            r.handle
            for regs in self._table.values()
            for r in regs
            if r.handle.module == module
        ]
        out.extend(
            item.handle
            for op, item in self._pending
            if op == "add" and item.handle.module == module
        )
        return out

    def is_subscribed(self, hook_id: str) -> bool:
        return hook_id in self._subscribed

    @property
    def dispatching(self) -> bool:
        return self._depth > 0

    def snapshot(self) -> Dict[str, Any]:
        return {
            hook_id: {
                "subscribed": hook_id in self._subscribed,
                "modules": [r.handle.module for r in regs],
            }
            for hook_id, regs in self._table.items()
        }

    # --- internals ------------------------------------------------------
    def _invoke(
        self,
        hook_id: str,
        reg: HookRegistration,
        args: tuple,
        kwargs: Dict[str, Any],
    ) -> bool:
        try:
            if reg.when is not None and not reg.when(*args, **kwargs):
                return False
            reg.callback(*args, **kwargs)
            return True
        except Exception as e:  # noqa: BLE001
            module = reg.handle.module
            metrics.inc(
                "hook_callback_errors_total", {"hook": hook_id, "module": module}
            )
            log = get_logger(module)
            log.error(
                "Hook '%s' callback failed: %s: %s [%s]",
                hook_id,
                type(e).__name__,
                e,
                validate_error_type("hook-callback-failed"),
            )
            log.debug("%s", traceback.format_exc())
            return False

    def _add(self, reg: HookRegistration) -> None:
        hook_id = reg.handle.hook_id
        self._table.setdefault(hook_id, []).append(reg)
        self._ensure_subscribed(hook_id)

    def _remove(self, handle: HookHandle) -> bool:
        regs = self._table.get(handle.hook_id)
        if not regs:
            return False
        for i, reg in enumerate(regs):
            if reg.handle == handle:
                del regs[i]
                return True
        return False

    def _is_live(self, handle: HookHandle) -> bool:
        live = any(
            r.handle == handle for r in self._table.get(handle.hook_id, ())
        )
        for op, item in self._pending:
            if op == "add" and item.handle == handle:
                live = True
            elif op == "remove" and item == handle:
                live = False
        return live

    def _apply_pending(self) -> None:
        pending, self._pending = self._pending, []
        for op, item in pending:
            if op == "add":
                self._add(item)
            else:
                self._remove(item)

    def _ensure_subscribed(self, hook_id: str) -> bool:
        if hook_id in self._subscribed:
            return True
        if self._host is not None:
            def _dispatcher(*args: Any, **kwargs: Any) -> int:
                return self.dispatch(hook_id, *args, **kwargs)

            try:
                self._host.subscribe(hook_id, _dispatcher)
            except Exception as e:  # noqa: BLE001
                metrics.inc("hook_subscribe_failures_total", {"hook": hook_id})
                self._log.error(
                    "Failed to subscribe to '%s': %s [%s]",
                    hook_id,
                    e,
                    validate_error_type("hook-subscribe-failed"),
                )
                return False
        self._subscribed.add(hook_id)
        metrics.inc("hook_subscriptions_total", {"hook": hook_id})
        self._log.debug("Subscribed to '%s'", hook_id)
        return True


__all__ = [
    "HookHost",
    "HookHandle",
    "HookRegistration",
    "HookMultiplexer",
]
