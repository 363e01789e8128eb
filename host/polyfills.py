"""Compatibility shims for capabilities an older host does not provide.

Each shim is a registered capability implementation on the
:class:`~host.capabilities.HostSurface`. Installation is idempotent: a
feature already installed, or natively present, is never wrapped again.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any

from .capabilities import CONFIG, CREATE_CONTEXT, EVENTS, HTTP, STORAGE, HostSurface
from .context import PluginContext, UserIdentity
from .events import EventBus
from .logger import PluginLogger
from .storage import MemoryStorage

logger = logging.getLogger(__name__)

ShimBuilder = Callable[[HostSurface], Any]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class StorageShim:
    """Coroutine storage API over a legacy storage object.

    The legacy object may be synchronous and may list keys via ``list()``
    instead of ``keys()``.
    """

    def __init__(self, legacy: Any) -> None:
        self.legacy = legacy

    async def get(self, key: str) -> Any:
        return await _resolve(self.legacy.get(key))

    async def set(self, key: str, value: Any) -> None:
        await _resolve(self.legacy.set(key, value))

    async def delete(self, key: str) -> None:
        remove = getattr(self.legacy, "delete", None) or getattr(self.legacy, "remove")
        await _resolve(remove(key))

    async def keys(self) -> list[str]:
        lister = getattr(self.legacy, "keys", None) or getattr(self.legacy, "list")
        return list(await _resolve(lister()))

    async def clear(self) -> None:
        clear = getattr(self.legacy, "clear", None)
        if callable(clear):
            await _resolve(clear())
            return
        for key in await self.keys():
            await self.delete(key)


class EventSubscribeShim:
    """``subscribe``/``unsubscribe`` over a legacy ``on``/``off`` bus."""

    def __init__(self, legacy: Any) -> None:
        self.legacy = legacy

    def subscribe(self, event: str, handler: Callable[[Any], Any]) -> Callable[[], None]:
        result = self.legacy.on(event, handler)
        if callable(result):
            return result

        def unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return unsubscribe

    def unsubscribe(self, event: str, handler: Callable[[Any], Any]) -> None:
        off = getattr(self.legacy, "off", None)
        if callable(off):
            off(event, handler)

    def emit(self, event: str, data: Any = None) -> None:
        emit = getattr(self.legacy, "emit", None) or getattr(self.legacy, "trigger")
        emit(event, data)


class SurfaceContextFactory:
    """Build plugin contexts from the discrete storage, events and config providers.

    Default factory of the bundled host; on older hosts it is installed as the
    ``create_context`` polyfill over their legacy globals.
    """

    def __init__(self, surface: HostSurface) -> None:
        self._surface = surface

    def __call__(
        self,
        plugin_name: str,
        plugin_version: str,
        *,
        config: dict[str, Any] | None = None,
        permissions: Iterable[str] = (),
        user: UserIdentity | None = None,
    ) -> PluginContext:
        storage = self._surface.get(STORAGE)
        if storage is None:
            storage = MemoryStorage()
        elif not isinstance(storage, (StorageShim, MemoryStorage)):
            storage = StorageShim(storage)
        if isinstance(storage, MemoryStorage):
            storage = storage.scoped(plugin_name)

        events = self._surface.get(EVENTS)
        if events is None:
            events = EventBus()
        elif not callable(getattr(events, "subscribe", None)):
            events = EventSubscribeShim(events)

        if config is None:
            legacy_config = self._surface.get(CONFIG) or {}
            config = dict(legacy_config.get(plugin_name, {}) or {})

        return PluginContext(
            plugin_name=plugin_name,
            plugin_version=plugin_version,
            logger=PluginLogger(plugin_name),
            storage=storage,
            events=events,
            http=self._surface.get(HTTP),
            user=user,
            config=config,
            permissions=frozenset(permissions),
        )


def _build_storage_shim(surface: HostSurface) -> Any:
    storage = surface.get(STORAGE)
    if storage is None:
        return None
    if isinstance(storage, StorageShim):
        return storage
    if inspect.iscoroutinefunction(getattr(storage, "get", None)) and callable(
        getattr(storage, "keys", None)
    ):
        return storage
    return StorageShim(storage)


def _build_event_shim(surface: HostSurface) -> Any:
    events = surface.get(EVENTS)
    if events is None:
        return None
    if callable(getattr(events, "subscribe", None)):
        return events
    if not callable(getattr(events, "on", None)):
        return None
    return EventSubscribeShim(events)


def _build_context_factory(surface: HostSurface) -> Any:
    factory = surface.get(CREATE_CONTEXT)
    if callable(factory):
        return factory
    return SurfaceContextFactory(surface)


# feature name -> (capability it provides, builder)
DEFAULT_SHIMS: dict[str, tuple[str, ShimBuilder]] = {
    "create_context": (CREATE_CONTEXT, _build_context_factory),
    "event_subscribe": (EVENTS, _build_event_shim),
    "async_storage": (STORAGE, _build_storage_shim),
    "storage_keys": (STORAGE, _build_storage_shim),
}


class PolyfillInstaller:
    """Install shims for missing host features onto a host surface."""

    def __init__(
        self,
        surface: HostSurface,
        shims: dict[str, tuple[str, ShimBuilder]] | None = None,
    ) -> None:
        self._surface = surface
        self._shims = dict(DEFAULT_SHIMS if shims is None else shims)
        self._installed: set[str] = set()

    @property
    def installed(self) -> list[str]:
        return sorted(self._installed)

    def is_installed(self, feature: str) -> bool:
        return feature in self._installed

    def available(self) -> list[str]:
        """Return every feature name a shim exists for."""
        return sorted(self._shims)

    def install(self, missing: Iterable[str]) -> list[str]:
        """Install shims for ``missing`` features; return the ones newly installed."""
        newly_installed: list[str] = []
        for feature in missing:
            if feature in self._installed:
                continue

            entry = self._shims.get(feature)
            if entry is None:
                logger.warning("No polyfill available for feature %s", feature)
                continue

            capability, builder = entry
            implementation = builder(self._surface)
            if implementation is None:
                logger.warning(
                    "Cannot polyfill %s: host provides no legacy %s primitive",
                    feature,
                    capability,
                )
                continue

            if implementation is not self._surface.get(capability):
                self._surface.provide(capability, implementation, shim=True)
            self._installed.add(feature)
            newly_installed.append(feature)
            logger.info("Installed polyfill for %s", feature)

        return newly_installed
