"""In-process host used when no engine is attached (tools, tests)."""
from __future__ import annotations

from typing import Any, Dict, Optional

from .multiplexer import Dispatcher


class HostSubscriptionError(RuntimeError):
    pass


class LocalHost:
    """Keeps one dispatcher per hook id, like an engine would.

    ``max_subscriptions`` mimics hosts that cap distinct subscriptions;
    ``fire`` plays the engine emitting an event.
    """

    def __init__(self, max_subscriptions: Optional[int] = None) -> None:
        self.max_subscriptions = max_subscriptions
        self.dispatchers: Dict[str, Dispatcher] = {}
        self.subscribe_calls: Dict[str, int] = {}

    def subscribe(self, hook_id: str, dispatcher: Dispatcher) -> None:
        self.subscribe_calls[hook_id] = self.subscribe_calls.get(hook_id, 0) + 1
        if hook_id in self.dispatchers:
            raise HostSubscriptionError(f"'{hook_id}' already subscribed")
        if (
            self.max_subscriptions is not None
            and len(self.dispatchers) >= self.max_subscriptions
        ):
            raise HostSubscriptionError("subscription limit reached")
        self.dispatchers[hook_id] = dispatcher

    def fire(self, hook_id: str, *args: Any, **kwargs: Any) -> int:
        dispatcher = self.dispatchers.get(hook_id)
        if dispatcher is None:
            return 0
        return dispatcher(*args, **kwargs)
