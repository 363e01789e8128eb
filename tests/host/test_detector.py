"""Unit tests for host version and feature detection."""

from __future__ import annotations

from typing import Any

from host.capabilities import CREATE_CONTEXT, EVENTS, STORAGE, HostSurface
from host.detector import VersionDetector
from host.events import EventBus
from host.storage import MemoryStorage


class _LegacyEvents:
    def on(self, event: str, handler: Any) -> None:
        pass

    def off(self, event: str, handler: Any) -> None:
        pass


class _SyncStorage:
    def get(self, key: str) -> Any:
        return None

    def set(self, key: str, value: Any) -> None:
        pass


def _modern_surface(**kwargs: Any) -> HostSurface:
    surface = HostSurface({STORAGE: MemoryStorage(), EVENTS: EventBus()}, **kwargs)
    surface.provide(CREATE_CONTEXT, lambda *args, **kw: None)
    return surface


def test_advertised_version_wins() -> None:
    """A version advertised by the surface beats every other source."""
    detector = VersionDetector(
        _modern_surface(version="2.3.1"),
        environ={"PLUGIN_HOST_VERSION": "1.0.0"},
        override="1.2.0",
    )

    assert detector.host_version() == "2.3.1"
    assert detector.source == "advertised"


def test_environment_override_beats_probing() -> None:
    """The environment override should win over feature inference."""
    detector = VersionDetector(_modern_surface(), environ={"PLUGIN_HOST_VERSION": "1.4.0"})

    assert detector.host_version() == "1.4.0"
    assert detector.source == "environment"
    assert detector.has_feature("create_context") is True


def test_config_override_used_without_environment() -> None:
    """The configured override applies when no env var is set."""
    detector = VersionDetector(_modern_surface(), environ={}, override="1.7.0")

    assert detector.host_version() == "1.7.0"
    assert detector.source == "config"


def test_invalid_environment_value_is_ignored() -> None:
    """Non-numeric env values should be skipped, not trusted."""
    detector = VersionDetector(_modern_surface(), environ={"PLUGIN_HOST_VERSION": "latest"})

    assert detector.host_version() == "2.0.0"
    assert detector.source == "probe"


def test_context_factory_implies_v2() -> None:
    """A context-creation capability implies at least 2.0.0."""
    detector = VersionDetector(_modern_surface(), environ={})

    assert detector.host_version() == "2.0.0"
    assert detector.is_at_least("2.0.0") is True
    assert detector.is_before("2.1") is True
    assert detector.matches("2.x") is True


def test_subscribe_without_context_factory_implies_1_5() -> None:
    """An event bus with subscribe but no context factory implies 1.5.0."""
    surface = HostSurface({EVENTS: EventBus(), STORAGE: _SyncStorage()})

    detector = VersionDetector(surface, environ={})

    assert detector.host_version() == "1.5.0"
    assert detector.has_feature("async_storage") is False
    assert "create_context" in detector.missing_features()


def test_legacy_host_is_1x() -> None:
    """Only legacy primitives present means a 1.x host."""
    surface = HostSurface({EVENTS: _LegacyEvents(), STORAGE: _SyncStorage()})

    detector = VersionDetector(surface, environ={})

    assert detector.host_version() == "1.0.0"
    assert detector.matches("1.x") is True
    assert detector.missing_features(["create_context", "event_subscribe"]) == [
        "create_context",
        "event_subscribe",
    ]


def test_undetectable_host_falls_back_to_oldest() -> None:
    """An empty surface falls back to the configured oldest version."""
    detector = VersionDetector(HostSurface(), environ={})

    assert detector.host_version() == "1.0.0"
    assert detector.source == "fallback"


def test_probe_exception_means_feature_absent() -> None:
    """A raising probe should report the feature as absent."""

    def broken(surface: HostSurface) -> bool:
        raise RuntimeError("probe crashed")

    detector = VersionDetector(
        _modern_surface(),
        environ={},
        probes={"create_context": broken, "storage_keys": lambda s: True},
    )

    assert detector.has_feature("create_context") is False
    assert detector.has_feature("storage_keys") is True
    assert detector.host_version() == "1.0.0"


def test_shims_do_not_raise_detected_version() -> None:
    """Polyfilled capabilities must not make an old host look new."""
    surface = HostSurface({EVENTS: _LegacyEvents()})
    surface.provide(CREATE_CONTEXT, lambda *args, **kw: None, shim=True)

    detector = VersionDetector(surface, environ={})

    assert detector.has_feature("create_context") is False
    assert detector.host_version() == "1.0.0"


def test_detection_is_cached_until_refresh() -> None:
    """Results are computed once and recomputed only after refresh."""
    surface = HostSurface({EVENTS: _LegacyEvents()})
    detector = VersionDetector(surface, environ={})
    assert detector.host_version() == "1.0.0"

    surface.provide(CREATE_CONTEXT, lambda *args, **kw: None)
    assert detector.host_version() == "1.0.0"

    detector.refresh()
    assert detector.host_version() == "2.0.0"
