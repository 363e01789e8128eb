"""Unit tests for compatibility adapters and the adapter registry."""

from __future__ import annotations

import types
from typing import Any

import pytest

from host.deprecation import DeprecationManager
from host.exceptions import AdapterNotFoundError
from host.polyfills import SurfaceContextFactory
from plugins.adapters import (
    AdapterRegistry,
    ClassAdapterV1,
    ClassBridgeV1,
    ModuleAdapterV0,
    ModuleBridgeV0,
    create_default_registry,
    resolve_target_version,
    translate_permission,
)
from plugins.base import Plugin
from plugins.hooks import PluginHooks
from plugins.services import create_default_surface


class _LegacyWidget:
    """1.x plugin: config-only constructor and old hook names."""

    def __init__(self, config: dict[str, Any]) -> None:
        self.config = config
        self.events: list[str] = []

    def init(self, context: Any) -> None:
        self.events.append(f"init:{context.plugin_name}")

    def on_activate(self, context: Any) -> None:
        self.events.append("activate")

    def on_deactivate(self, context: Any) -> None:
        self.events.append("deactivate")

    def destroy(self) -> None:
        self.events.append("destroy")

    def on_update(self, context: Any, old_version: str) -> None:
        self.events.append(f"update:{old_version}")


def _legacy_module(events: list[str]) -> types.ModuleType:
    module = types.ModuleType("legacy_clock")
    module.setup = lambda context: events.append(f"setup:{context.plugin_name}")  # type: ignore[attr-defined]
    module.activate = lambda context: events.append("activate")  # type: ignore[attr-defined]
    module.deactivate = lambda: events.append("deactivate")  # type: ignore[attr-defined]
    module.dispose = lambda: events.append("dispose")  # type: ignore[attr-defined]
    return module


def _context(name: str = "legacy", config: dict[str, Any] | None = None) -> Any:
    return SurfaceContextFactory(create_default_surface())(name, "1.0.0", config=config or {})


@pytest.mark.parametrize("version", ["1.0.0", "1.9.3"])
def test_registry_selects_v1_adapter(version: str) -> None:
    """1.x tokens resolve to the class adapter."""
    registry = create_default_registry()

    assert isinstance(registry.get_adapter(version), ClassAdapterV1)
    assert isinstance(registry.get_adapter("1.x"), ClassAdapterV1)
    assert isinstance(registry.get_adapter("0.4.2"), ModuleAdapterV0)


def test_registry_first_match_wins() -> None:
    """When two patterns match, the first registered wins."""
    registry = AdapterRegistry()
    first = ModuleAdapterV0()
    registry.register("1.2.0", first)
    registry.register("1.x", ClassAdapterV1())

    assert registry.get_adapter("1.2.0") is first
    assert isinstance(registry.get_adapter("1.3.0"), ClassAdapterV1)
    assert registry.patterns == ["1.2.0", "1.x"]


def test_registry_without_match_raises() -> None:
    """Unknown majors raise AdapterNotFoundError."""
    registry = create_default_registry()

    assert registry.get_adapter("2.0.0") is None
    with pytest.raises(AdapterNotFoundError):
        registry.adapt(_LegacyWidget, "7.0.0")


def test_needs_adaptation_only_for_other_majors() -> None:
    """Only majors different from the current contract need adapting."""
    registry = create_default_registry()

    assert registry.needs_adaptation("1.4.0") is True
    assert registry.needs_adaptation("2.3.0") is False


def test_v1_adaptation_emits_one_notice_per_rewritten_surface() -> None:
    """Each renamed hook and the config-only constructor get a notice."""
    adapted = create_default_registry().adapt(_LegacyWidget, "1.4.0")

    features = [notice.feature for notice in adapted.warnings]
    assert features == [
        "Plugin.init",
        "Plugin.destroy",
        "Plugin.on_activate",
        "Plugin.on_deactivate",
        "Plugin.__init__(config)",
    ]
    assert adapted.source_version == "1.4.0"
    assert "create_context" in adapted.polyfills_required


def test_v1_adaptation_is_idempotent() -> None:
    """Adapting an adapted plugin again does not double-wrap."""
    registry = create_default_registry()
    first = registry.adapt(_LegacyWidget, "1.4.0")

    second = registry.adapt(first.plugin, "1.4.0")

    assert isinstance(second.plugin, ClassBridgeV1)
    assert second.plugin.legacy is _LegacyWidget
    assert second.plugin.routes == first.plugin.routes
    assert [n.feature for n in second.warnings] == [n.feature for n in first.warnings]
    assert PluginHooks.from_plugin(second.plugin).implemented == PluginHooks.from_plugin(
        first.plugin
    ).implemented


@pytest.mark.asyncio
async def test_v1_bridge_renames_hooks_and_counts_usage() -> None:
    """Bridged calls reach the old hook names and are counted."""
    deprecations = DeprecationManager()
    adapted = create_default_registry(deprecations).adapt(_LegacyWidget, "1.4.0")
    bridge = adapted.plugin
    context = _context(config={"units": "c"})

    bridge.initialize(context)
    await bridge.on_enable(context)
    await bridge.on_update(context, "1.3.0")
    await bridge.on_disable(context)
    await bridge.cleanup()

    legacy = bridge.instance
    assert isinstance(legacy, _LegacyWidget)
    assert legacy.config == {"units": "c"}
    assert legacy.events == ["init:legacy", "activate", "update:1.3.0", "deactivate", "destroy"]
    assert deprecations.usage_count("Plugin.init") == 1
    assert deprecations.usage_count("Plugin.on_activate") == 1
    assert deprecations.usage_count("Plugin.__init__(config)") == 1


def test_v1_context_api_namespace() -> None:
    """context.api is served from the current context and counted on use."""
    deprecations = DeprecationManager()
    seen: list[Any] = []

    class UsesApi:
        def __init__(self, config: dict[str, Any]) -> None:
            pass

        def init(self, context: Any) -> None:
            context.api.events.on("tick", seen.append)
            context.api.events.emit("tick", 1)

    context = _context()
    adapted = ClassAdapterV1(deprecations).adapt(UsesApi, "1.0.0")

    adapted.plugin.initialize(context)

    assert seen == [1]
    assert deprecations.usage_count("context.api") == 2


@pytest.mark.asyncio
async def test_v0_module_hooks_are_mapped() -> None:
    """0.x module hooks map onto the current lifecycle hooks."""
    events: list[str] = []
    adapted = create_default_registry().adapt(_legacy_module(events), "0.3.0")
    bridge = adapted.plugin
    context = _context("clock")

    assert isinstance(bridge, ModuleBridgeV0)
    hooks = PluginHooks.from_plugin(bridge)
    assert hooks.implemented == ["on_install", "on_enable", "on_disable", "cleanup"]

    await hooks.call("on_install", context)
    await hooks.call("on_enable", context)
    await hooks.call("on_disable", context)
    await hooks.call("cleanup")

    assert events == ["setup:clock", "activate", "deactivate", "dispose"]
    assert adapted.limitations


def test_translate_manifest_rewrites_legacy_permissions() -> None:
    """Dot-notation permissions become canonical tokens with one notice."""
    deprecations = DeprecationManager()
    adapter = ClassAdapterV1(deprecations)

    translated, notices = adapter.translate_manifest(
        {"name": "w", "permissions": ["network.access", "storage", "camera"]}
    )

    assert translated["permissions"] == [
        "network-access",
        "storage-read",
        "storage-write",
        "camera",
    ]
    assert [n.feature for n in notices] == ["dot-notation permissions"]
    assert deprecations.usage_count("dot-notation permissions") == 1


def test_translate_manifest_leaves_canonical_manifests_alone() -> None:
    """Canonical permissions produce no notice."""
    translated, notices = ClassAdapterV1().translate_manifest(
        {"permissions": ["network-access"]}
    )

    assert translated["permissions"] == ["network-access"]
    assert notices == []


def test_translate_permission_rules() -> None:
    """Aliases win; otherwise dots and underscores become dashes."""
    assert translate_permission("location") == ("geolocation",)
    assert translate_permission("clipboard.read") == ("clipboard-read",)
    assert translate_permission("storage_write") == ("storage-write",)


def test_resolve_prefers_explicit_declarations() -> None:
    """sdk_version on the plugin beats the manifest; both beat guessing."""

    class Declared(_LegacyWidget):
        sdk_version = "1.6.0"

    assert resolve_target_version(Declared, {"sdk_version": "0.9.0"}) == ("1.6.0", [])
    assert resolve_target_version(_LegacyWidget, {"sdk_version": "1.2.0"}) == ("1.2.0", [])
    assert resolve_target_version(Plugin, {}) == ("2.0.0", [])


def test_resolve_guess_is_reported_as_limitation() -> None:
    """A shape-based guess is returned with a limitation note."""
    version, limitations = resolve_target_version(_LegacyWidget, {})
    assert version == "1.0.0"
    assert "inferred from plugin shape" in limitations[0]

    version, limitations = resolve_target_version(_legacy_module([]), None)
    assert version == "0.1.0"
    assert limitations
