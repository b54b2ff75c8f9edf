"""
Observer channels for expiration events.

A channel keeps a list of handlers; subscribe() returns a Subscription
whose unsubscribe() removes the handler again. Handlers may be sync or
async. A failing handler is logged and does not stop delivery to the
others.
"""

import inspect
import threading
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from .audit_logger import AuditLogger, ComponentLogger

E = TypeVar("E")

Handler = Callable[[E], Union[Awaitable[Any], Any]]


class Subscription:
    """Handle returned by EventChannel.subscribe."""

    def __init__(self, channel: "EventChannel", handler: Callable) -> None:
        self._channel = channel
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self._active:
            self._active = False
            self._channel._remove(self._handler)


class EventChannel(Generic[E]):
    """Named publish/subscribe channel."""

    def __init__(self, name: str, logger: Optional[AuditLogger] = None) -> None:
        self._name = name
        self._handlers: list[Callable] = []
        self._lock = threading.Lock()
        self._log = ComponentLogger(logger, f"Events:{name}")

    @property
    def name(self) -> str:
        return self._name

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def subscribe(self, handler: Handler) -> Subscription:
        with self._lock:
            self._handlers.append(handler)
        return Subscription(self, handler)

    def _remove(self, handler: Callable) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

    async def emit(self, event: E) -> int:
        """
        Deliver an event to every handler.

        Returns:
            Number of handlers that completed without raising
        """
        with self._lock:
            handlers = list(self._handlers)

        delivered = 0
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                self._log.error(f"Handler on '{self._name}' failed", error=e)
        return delivered
