"""Event bus for plugin-to-plugin and host-to-plugin communication.

Design:
- Handlers registered per event name, run in descending priority.
- Error isolation: one failing handler does not stop the others.
- ``subscribe`` returns a callable that removes the subscription.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


@dataclass
class HandlerInfo:
    """A registered handler and its priority (higher runs first)."""

    handler: Handler
    priority: int = 0

    def __lt__(self, other: HandlerInfo) -> bool:
        return self.priority < other.priority


class EventBus:
    """Synchronous publish/subscribe bus.

    Example:
        bus = EventBus()
        unsubscribe = bus.subscribe("weather.updated", print)
        bus.emit("weather.updated", {"location": "Oslo"})
        unsubscribe()
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[HandlerInfo]] = defaultdict(list)
        self._event_count = 0
        self._error_count = 0

    def subscribe(self, event: str, handler: Handler, priority: int = 0) -> Callable[[], None]:
        """Register ``handler`` for ``event`` and return its unsubscribe callable.

        Raises:
            ValueError: If ``handler`` is not callable.
        """
        if not callable(handler):
            raise ValueError(f"Handler must be callable, got {type(handler)}")

        self._handlers[event].append(HandlerInfo(handler=handler, priority=priority))
        self._handlers[event].sort(reverse=True)
        logger.debug("Subscribed handler to %s with priority %d", event, priority)

        def unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return unsubscribe

    def unsubscribe(self, event: str, handler: Handler) -> bool:
        """Remove one handler; return whether it was registered."""
        handlers = self._handlers.get(event, [])
        for i, info in enumerate(handlers):
            if info.handler == handler:
                handlers.pop(i)
                logger.debug("Unsubscribed handler from %s", event)
                return True
        return False

    def emit(self, event: str, data: Any = None) -> None:
        """Deliver ``data`` to every handler subscribed to ``event``."""
        self._event_count += 1
        for info in list(self._handlers.get(event, [])):
            try:
                info.handler(data)
            except Exception:
                self._error_count += 1
                logger.exception("Handler error for event %s", event)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def get_stats(self) -> dict[str, Any]:
        """Return delivery statistics."""
        return {
            "event_count": self._event_count,
            "error_count": self._error_count,
            "handlers": {
                event: len(handlers) for event, handlers in self._handlers.items()
            },
        }
