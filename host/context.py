"""Runtime context handed to plugin hooks.

This module provides the context container passed to every lifecycle hook and
a ``ContextVar``-based current-context mechanism, which is safe for threads
and async coroutines.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from .capabilities import EventBusProtocol, HttpProtocol, StorageProtocol
from .logger import PluginLogger

logger = logging.getLogger(__name__)

_current_context: contextvars.ContextVar[PluginContext | None] = contextvars.ContextVar(
    "current_plugin_context",
    default=None,
)


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """The user on whose behalf the plugin runs."""

    id: str
    email: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict)


class TimerRegistry:
    """Timers a plugin schedules through its context.

    The lifecycle controller cancels every live timer when the plugin is
    disabled, uninstalled or destroyed.
    """

    def __init__(self, owner: str = "") -> None:
        self._owner = owner
        self._tasks: set[asyncio.Task[None]] = set()

    def set_interval(
        self,
        callback: Callable[[], Any | Awaitable[Any]],
        seconds: float,
    ) -> asyncio.Task[None]:
        """Run ``callback`` every ``seconds`` until cancelled."""

        async def _loop() -> None:
            while True:
                await asyncio.sleep(seconds)
                await self._run(callback)

        return self._track(asyncio.get_running_loop().create_task(_loop()))

    def set_timeout(
        self,
        callback: Callable[[], Any | Awaitable[Any]],
        seconds: float,
    ) -> asyncio.Task[None]:
        """Run ``callback`` once after ``seconds``."""

        async def _once() -> None:
            await asyncio.sleep(seconds)
            await self._run(callback)

        return self._track(asyncio.get_running_loop().create_task(_once()))

    def cancel_all(self) -> int:
        """Cancel every pending timer; return how many were cancelled."""
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        self._tasks.clear()
        if pending:
            logger.debug("Cancelled %d timer(s) for %s", len(pending), self._owner)
        return len(pending)

    @property
    def active(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def _track(self, task: asyncio.Task[None]) -> asyncio.Task[None]:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, callback: Callable[[], Any | Awaitable[Any]]) -> None:
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Timer callback failed for %s", self._owner)


@dataclass(slots=True)
class PluginContext:
    """Services and identity passed to one plugin.

    Attributes:
        plugin_name: Name from the plugin manifest.
        plugin_version: Currently installed plugin version.
        logger: Logger tagged with the plugin name.
        storage: Asynchronous storage scoped to the plugin.
        events: Event bus shared with the host.
        http: Host HTTP client, if the host provides one.
        user: User identity, if known.
        config: Current plugin configuration.
        permissions: Canonical permission tokens granted to the plugin.
        timers: Timers owned by the plugin.
        data: Mutable custom storage for host-defined values.
    """

    plugin_name: str
    plugin_version: str
    logger: PluginLogger
    storage: StorageProtocol
    events: EventBusProtocol
    http: HttpProtocol | None = None
    user: UserIdentity | None = None
    config: dict[str, Any] = field(default_factory=dict)
    permissions: frozenset[str] = frozenset()
    timers: TimerRegistry = field(default_factory=TimerRegistry)
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get custom value from context data."""
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set custom value into context data."""
        self.data[key] = value

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    @contextmanager
    def activate(self) -> Iterator[PluginContext]:
        """Make this context current for the duration of a ``with`` block.

        The reset token lives in the block, so overlapping activations of the
        same context (a health check during a transition) unwind independently.
        """
        token = _current_context.set(self)
        try:
            yield self
        finally:
            _current_context.reset(token)


def get_current_context() -> PluginContext | None:
    """Get the plugin context of the hook currently executing, if any."""
    return _current_context.get()
