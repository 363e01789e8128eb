"""Compatibility adapters for plugins written against older SDK contracts.

The lifecycle controller only speaks the current (2.x) hook vocabulary. An
adapter wraps a legacy plugin in a bridge object exposing that vocabulary,
without touching the plugin's own logic:

- ``0.x`` module plugins: ``setup``/``activate``/``deactivate``/``dispose``.
- ``1.x`` class plugins: config-only constructors, ``init``/``destroy``,
  ``on_activate``/``on_deactivate`` and the ``context.api`` namespace.

Every rewritten surface yields one :class:`DeprecationNotice` at adaptation
time, and every bridged call is counted by the deprecation manager.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from host.context import PluginContext
from host.deprecation import DeprecationManager, DeprecationNotice
from host.exceptions import AdapterNotFoundError
from host.versioning import is_version_token, major_of, matches_pattern

from .base import CURRENT_SDK_VERSION
from .hooks import (
    CLEANUP,
    HEALTH_CHECK,
    INITIALIZE,
    ON_CONFIG_CHANGE,
    ON_DISABLE,
    ON_ENABLE,
    ON_INSTALL,
    ON_UNINSTALL,
    ON_UPDATE,
)

logger = logging.getLogger(__name__)

CURRENT_CONTRACT_MAJOR = major_of(CURRENT_SDK_VERSION)

PERMISSIONS_FEATURE = "dot-notation permissions"
CONTEXT_API_FEATURE = "context.api"
CONFIG_CONSTRUCTOR_FEATURE = "Plugin.__init__(config)"

# Legacy permission names that do not follow the plain "a.b" -> "a-b" rule.
LEGACY_PERMISSION_ALIASES: dict[str, tuple[str, ...]] = {
    "network": ("network-access",),
    "network.access": ("network-access",),
    "storage": ("storage-read", "storage-write"),
    "filesystem": ("filesystem-access",),
    "filesystem.access": ("filesystem-access",),
    "location": ("geolocation",),
    "location.read": ("geolocation",),
}

MODULE_HOOKS = ("setup", "activate", "deactivate", "dispose")
CLASS_V1_MARKERS = ("init", "destroy", "on_activate", "on_deactivate")


@dataclass(slots=True)
class AdaptedPlugin:
    """Result of adapting one plugin; owned by its lifecycle controller.

    Attributes:
        plugin: Object exposing the current hook vocabulary.
        polyfills_required: Host features the adapted plugin relies on.
        warnings: One notice per rewritten legacy surface.
        limitations: Behaviour the bridge cannot reproduce exactly.
        source_version: Contract version the plugin was written against.
    """

    plugin: Any
    polyfills_required: list[str] = field(default_factory=list)
    warnings: list[DeprecationNotice] = field(default_factory=list)
    limitations: list[str] = field(default_factory=list)
    source_version: str = CURRENT_SDK_VERSION


@dataclass(frozen=True, slots=True)
class _Route:
    legacy_name: str
    feature: str | None
    pass_context: bool = True


class LegacyBridge:
    """Base bridge; exposes one attribute per routed current-contract hook.

    Only hooks the legacy plugin actually implements are exposed, so the hook
    descriptor built from a bridge reflects the legacy plugin's real shape.
    """

    def __init__(
        self,
        legacy: Any,
        routes: Mapping[str, _Route],
        deprecations: DeprecationManager | None,
        source_version: str,
    ) -> None:
        self.legacy = legacy
        self.instance: Any = None if inspect.isclass(legacy) else legacy
        self.source_version = source_version
        self.routes = dict(routes)
        self.context: PluginContext | None = None
        self._deprecations = deprecations
        for current_name in self.routes:
            if current_name != INITIALIZE:
                setattr(self, current_name, self._make_dispatch(current_name))

    @property
    def label(self) -> str:
        return getattr(self.legacy, "__name__", None) or type(self.legacy).__name__

    def _make_dispatch(self, current_name: str) -> Callable[..., Any]:
        async def dispatch(*args: Any) -> Any:
            return await self._dispatch(current_name, *args)

        dispatch.__name__ = current_name
        return dispatch

    async def _dispatch(self, current_name: str, *args: Any) -> Any:
        route = self.routes[current_name]
        if route.feature is not None:
            self._warn(route.feature)

        target = getattr(self.instance if self.instance is not None else self.legacy, route.legacy_name)
        call_args = tuple(self.wrap_context(arg) for arg in args) if route.pass_context else ()
        result = target(*call_args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def wrap_context(self, value: Any) -> Any:
        return value

    def _warn(self, feature: str) -> None:
        if self._deprecations is not None:
            self._deprecations.warn(feature, context=self.label)


class LegacyApiNamespace:
    """``context.api`` as 1.x plugins knew it, served by the current context."""

    def __init__(self, context: PluginContext) -> None:
        self._context = context
        self.storage = context.storage
        self.http = context.http
        self.events = LegacyEventsView(context)
        self.logger = context.logger


class LegacyEventsView:
    """``on``/``off``/``emit`` over the current ``subscribe`` bus."""

    def __init__(self, context: PluginContext) -> None:
        self._events = context.events
        self._subscriptions: dict[tuple[str, int], Callable[[], None]] = {}

    def on(self, event: str, handler: Callable[[Any], Any]) -> Callable[[], None]:
        unsubscribe = self._events.subscribe(event, handler)
        self._subscriptions[(event, id(handler))] = unsubscribe
        return unsubscribe

    def off(self, event: str, handler: Callable[[Any], Any]) -> None:
        unsubscribe = self._subscriptions.pop((event, id(handler)), None)
        if unsubscribe is not None:
            unsubscribe()

    def emit(self, event: str, data: Any = None) -> None:
        self._events.emit(event, data)


class LegacyContextView:
    """Current context plus the deprecated ``api`` namespace."""

    def __init__(self, context: PluginContext, on_api_access: Callable[[], None]) -> None:
        self._context = context
        self._on_api_access = on_api_access
        self._api: LegacyApiNamespace | None = None

    @property
    def api(self) -> LegacyApiNamespace:
        self._on_api_access()
        if self._api is None:
            self._api = LegacyApiNamespace(self._context)
        return self._api

    def __getattr__(self, name: str) -> Any:
        return getattr(self._context, name)


class ClassBridgeV1(LegacyBridge):
    """Bridge for 1.x class plugins."""

    def __init__(
        self,
        legacy: Any,
        routes: Mapping[str, _Route],
        deprecations: DeprecationManager | None,
        source_version: str,
    ) -> None:
        super().__init__(legacy, routes, deprecations, source_version)
        self._view: LegacyContextView | None = None

    def initialize(self, context: PluginContext) -> Any:
        """Construct the legacy instance if needed, then run its ``init`` hook."""
        self.context = context
        self._view = LegacyContextView(context, lambda: self._warn(CONTEXT_API_FEATURE))

        if self.instance is None:
            self.instance = self._construct(context)

        route = self.routes.get(INITIALIZE)
        if route is None:
            return None
        if route.feature is not None:
            self._warn(route.feature)
        return getattr(self.instance, route.legacy_name)(self._view)

    def wrap_context(self, value: Any) -> Any:
        if isinstance(value, PluginContext) and self._view is not None:
            return self._view
        return value

    def _construct(self, context: PluginContext) -> Any:
        required = _required_init_params(self.legacy)
        if required == 0:
            return self.legacy()
        if required == 1:
            self._warn(CONFIG_CONSTRUCTOR_FEATURE)
            return self.legacy(dict(context.config))
        return self.legacy(self._view, dict(context.config))


class ModuleBridgeV0(LegacyBridge):
    """Bridge for 0.x module-style plugins."""


class CompatibilityAdapter(ABC):
    """Rewrites one legacy contract into the current hook vocabulary."""

    version_pattern: str = ""
    polyfills_required: tuple[str, ...] = ()

    def __init__(self, deprecations: DeprecationManager | None = None) -> None:
        self.deprecations = deprecations

    @abstractmethod
    def adapt(self, plugin: Any, target_version: str) -> AdaptedPlugin:
        """Wrap ``plugin`` so it exposes the current hook vocabulary."""

    def translate_manifest(
        self, manifest: Mapping[str, Any]
    ) -> tuple[dict[str, Any], list[DeprecationNotice]]:
        """Return ``manifest`` with legacy permission tokens translated.

        Translation happens before validation, which never accepts the legacy
        dot-notation.
        """
        translated = dict(manifest)
        permissions = manifest.get("permissions")
        if not isinstance(permissions, list):
            return translated, []

        tokens: list[Any] = []
        changed = False
        for permission in permissions:
            if isinstance(permission, str):
                canonical = translate_permission(permission)
                changed = changed or canonical != (permission,)
                for token in canonical:
                    if token not in tokens:
                        tokens.append(token)
            else:
                tokens.append(permission)

        if not changed:
            return translated, []

        translated["permissions"] = tokens
        self._warn(PERMISSIONS_FEATURE, str(manifest.get("name") or ""))
        return translated, [self._notice(PERMISSIONS_FEATURE)]

    def _notice(self, feature: str) -> DeprecationNotice:
        if self.deprecations is not None:
            return self.deprecations.notice_for(feature)
        return DeprecationNotice(feature, CURRENT_SDK_VERSION)

    def _warn(self, feature: str, context: str | None = None) -> None:
        if self.deprecations is not None:
            self.deprecations.warn(feature, context=context or None)

    @staticmethod
    def _unwrap(plugin: Any) -> Any:
        # Re-adapting a bridge starts again from the original legacy object.
        while isinstance(plugin, LegacyBridge):
            plugin = plugin.legacy
        return plugin


class ClassAdapterV1(CompatibilityAdapter):
    """Adapter for plugins targeting the 1.x class-based contract."""

    version_pattern = "1.x"
    polyfills_required = ("create_context", "event_subscribe", "async_storage")

    # current hook -> (1.x name, deprecated feature or None when unchanged)
    RENAMES: tuple[tuple[str, str, str | None], ...] = (
        (INITIALIZE, "init", "Plugin.init"),
        (CLEANUP, "destroy", "Plugin.destroy"),
        (ON_ENABLE, "on_activate", "Plugin.on_activate"),
        (ON_DISABLE, "on_deactivate", "Plugin.on_deactivate"),
    )
    PASSTHROUGH: tuple[str, ...] = (
        INITIALIZE,
        CLEANUP,
        ON_INSTALL,
        ON_UNINSTALL,
        ON_ENABLE,
        ON_DISABLE,
        ON_UPDATE,
        ON_CONFIG_CHANGE,
        HEALTH_CHECK,
    )

    def adapt(self, plugin: Any, target_version: str) -> AdaptedPlugin:
        legacy = self._unwrap(plugin)
        routes: dict[str, _Route] = {}
        notices: list[DeprecationNotice] = []

        for current_name, legacy_name, feature in self.RENAMES:
            if callable(getattr(legacy, legacy_name, None)):
                routes[current_name] = _Route(legacy_name, feature)
                notices.append(self._notice(feature))

        for name in self.PASSTHROUGH:
            if name not in routes and callable(getattr(legacy, name, None)):
                routes[name] = _Route(name, None)

        limitations: list[str] = []
        if inspect.isclass(legacy):
            if _required_init_params(legacy) == 1:
                notices.append(self._notice(CONFIG_CONSTRUCTOR_FEATURE))
            limitations.append(
                "plugin class is constructed lazily when the plugin is installed"
            )

        bridge = ClassBridgeV1(legacy, routes, self.deprecations, target_version)
        logger.debug(
            "Adapted 1.x plugin %s: %s",
            bridge.label,
            ", ".join(f"{r.legacy_name}->{name}" for name, r in routes.items()),
        )
        return AdaptedPlugin(
            plugin=bridge,
            polyfills_required=list(self.polyfills_required),
            warnings=notices,
            limitations=limitations,
            source_version=target_version,
        )


class ModuleAdapterV0(CompatibilityAdapter):
    """Adapter for plugins targeting the 0.x module contract."""

    version_pattern = "0.x"
    polyfills_required = ("create_context", "async_storage")

    RENAMES: tuple[tuple[str, str, str, bool], ...] = (
        (ON_INSTALL, "setup", "module.setup", True),
        (ON_ENABLE, "activate", "module.activate", True),
        (ON_DISABLE, "deactivate", "module.deactivate", False),
        (CLEANUP, "dispose", "module.dispose", False),
    )

    def adapt(self, plugin: Any, target_version: str) -> AdaptedPlugin:
        legacy = self._unwrap(plugin)
        routes: dict[str, _Route] = {}
        notices: list[DeprecationNotice] = []

        for current_name, legacy_name, feature, pass_context in self.RENAMES:
            if callable(getattr(legacy, legacy_name, None)):
                routes[current_name] = _Route(legacy_name, feature, pass_context)
                notices.append(self._notice(feature))

        limitations = [
            "0.x plugins have no update, config-change or health-check hooks",
            "deactivate and dispose are called without a context",
        ]
        return AdaptedPlugin(
            plugin=ModuleBridgeV0(legacy, routes, self.deprecations, target_version),
            polyfills_required=list(self.polyfills_required),
            warnings=notices,
            limitations=limitations,
            source_version=target_version,
        )


class AdapterRegistry:
    """Ordered ``(pattern, adapter)`` pairs, evaluated first-match."""

    def __init__(self, current_major: int = CURRENT_CONTRACT_MAJOR) -> None:
        self.current_major = current_major
        self._adapters: list[tuple[str, CompatibilityAdapter]] = []

    def register(self, pattern: str, adapter: CompatibilityAdapter) -> None:
        self._adapters.append((pattern, adapter))

    @property
    def patterns(self) -> list[str]:
        return [pattern for pattern, _ in self._adapters]

    def get_adapter(self, version: str) -> CompatibilityAdapter | None:
        """Return the adapter registered under ``version`` or matching it, if any."""
        for pattern, adapter in self._adapters:
            if pattern == version or matches_pattern(pattern, version):
                return adapter
        return None

    def needs_adaptation(self, target_version: str) -> bool:
        return major_of(target_version) != self.current_major

    def adapt(self, plugin: Any, target_version: str) -> AdaptedPlugin:
        """Adapt ``plugin`` written against ``target_version``.

        Raises:
            AdapterNotFoundError: If no registered pattern matches.
        """
        adapter = self.get_adapter(target_version)
        if adapter is None:
            raise AdapterNotFoundError(
                f"No compatibility adapter for plugin contract {target_version}",
                context={"target_version": target_version, "patterns": self.patterns},
            )
        return adapter.adapt(plugin, target_version)


def create_default_registry(deprecations: DeprecationManager | None = None) -> AdapterRegistry:
    """Registry with the bundled ``0.x`` and ``1.x`` adapters."""
    registry = AdapterRegistry()
    registry.register("1.x", ClassAdapterV1(deprecations))
    registry.register("0.x", ModuleAdapterV0(deprecations))
    return registry


def translate_permission(token: str) -> tuple[str, ...]:
    """Map a legacy permission token to canonical kebab-case token(s)."""
    if token in LEGACY_PERMISSION_ALIASES:
        return LEGACY_PERMISSION_ALIASES[token]
    return (token.replace(".", "-").replace("_", "-").lower(),)


def resolve_target_version(
    plugin: Any, manifest: Mapping[str, Any] | None = None
) -> tuple[str, list[str]]:
    """Work out which contract version ``plugin`` was written against.

    An explicit ``sdk_version`` on the plugin wins, then the manifest's
    ``sdk_version``. Without either, the plugin's shape is used as a guess and
    the guess is reported back as a limitation.

    Returns:
        ``(version, limitations)``.
    """
    if isinstance(plugin, LegacyBridge):
        return plugin.source_version, []

    declared = getattr(plugin, "sdk_version", None)
    if is_version_token(declared):
        return declared, []

    from_manifest = (manifest or {}).get("sdk_version")
    if is_version_token(from_manifest):
        return from_manifest, []

    guessed, reason = _guess_from_shape(plugin)
    if guessed == CURRENT_SDK_VERSION:
        return guessed, []

    note = (
        f"contract version {guessed} inferred from plugin shape ({reason}); "
        "declare sdk_version to make it explicit"
    )
    logger.warning("Plugin %r: %s", getattr(plugin, "__name__", plugin), note)
    return guessed, [note]


def _guess_from_shape(plugin: Any) -> tuple[str, str]:
    if any(callable(getattr(plugin, name, None)) for name in MODULE_HOOKS):
        return "0.1.0", "module hooks"
    if inspect.isclass(plugin) and _required_init_params(plugin) == 1:
        return "1.0.0", "single-argument constructor"
    if any(callable(getattr(plugin, name, None)) for name in CLASS_V1_MARKERS):
        return "1.0.0", "1.x hook names"
    return CURRENT_SDK_VERSION, "current hook names"


def _required_init_params(cls: type) -> int:
    """Count required positional constructor parameters, ``self`` excluded."""
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return 0
    return sum(
        1
        for param in signature.parameters.values()
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD)
        and param.default is param.empty
    )
