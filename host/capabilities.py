"""Host capability surface and the capability contracts plugins rely on.

The host exposes its services through a :class:`HostSurface`: a registry of
named capability providers. Polyfills register shim implementations on the
same surface instead of mutating module globals.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Capability provider names used by the core.
CREATE_CONTEXT = "create_context"
STORAGE = "storage"
EVENTS = "events"
CONFIG = "config"
HTTP = "http"
USER = "user"

Unsubscribe = Callable[[], None]


@runtime_checkable
class StorageProtocol(Protocol):
    """Asynchronous key-value storage scoped to one plugin."""

    async def get(self, key: str) -> Any:
        """Return stored value or ``None``."""

    async def set(self, key: str, value: Any) -> None:
        """Store a value."""

    async def delete(self, key: str) -> None:
        """Delete one key."""

    async def keys(self) -> list[str]:
        """Return all stored keys."""

    async def clear(self) -> None:
        """Remove every key."""


@runtime_checkable
class HttpProtocol(Protocol):
    """HTTP client provided by the host; transport is out of scope here."""

    async def get(self, url: str, **options: Any) -> Any:
        """Issue a GET request."""

    async def post(self, url: str, data: Any = None, **options: Any) -> Any:
        """Issue a POST request."""

    async def put(self, url: str, data: Any = None, **options: Any) -> Any:
        """Issue a PUT request."""

    async def delete(self, url: str, **options: Any) -> Any:
        """Issue a DELETE request."""


@runtime_checkable
class EventBusProtocol(Protocol):
    """Publish/subscribe bus for plugin communication."""

    def emit(self, event: str, data: Any = None) -> None:
        """Publish ``data`` to subscribers of ``event``."""

    def subscribe(self, event: str, handler: Callable[[Any], Any]) -> Unsubscribe:
        """Subscribe and return a callable that removes the subscription."""


class HostSurface:
    """Named capability providers exposed by the host.

    Attributes:
        version: Version advertised by the host itself, if any.
    """

    def __init__(
        self,
        providers: dict[str, Any] | None = None,
        *,
        version: str | None = None,
    ) -> None:
        self.version = version
        self._providers: dict[str, Any] = dict(providers or {})
        self._shimmed: set[str] = set()

    def provide(self, name: str, implementation: Any, *, shim: bool = False) -> None:
        """Register (or replace) the provider for ``name``."""
        self._providers[name] = implementation
        if shim:
            self._shimmed.add(name)
        else:
            self._shimmed.discard(name)
        logger.debug("Capability %s provided%s", name, " (shim)" if shim else "")

    def get(self, name: str, default: Any = None) -> Any:
        return self._providers.get(name, default)

    def has(self, name: str) -> bool:
        return self._providers.get(name) is not None

    def is_shim(self, name: str) -> bool:
        """Return whether the provider for ``name`` was installed as a polyfill."""
        return name in self._shimmed

    def remove(self, name: str) -> None:
        self._providers.pop(name, None)
        self._shimmed.discard(name)

    def names(self) -> list[str]:
        return sorted(self._providers)


__all__ = [
    "CREATE_CONTEXT",
    "STORAGE",
    "EVENTS",
    "CONFIG",
    "HTTP",
    "USER",
    "StorageProtocol",
    "HttpProtocol",
    "EventBusProtocol",
    "HostSurface",
    "Unsubscribe",
]
