"""Unit tests for the host exception hierarchy."""

from __future__ import annotations

import pytest

from host.exceptions import (
    AdapterNotFoundError,
    ConfigError,
    InvalidTransitionError,
    LifecycleHookError,
    ManifestValidationError,
    PluginHostError,
    VersionDetectionFailure,
    format_exception,
    wrap_exception,
)


def test_base_error_keeps_fields() -> None:
    """PluginHostError should keep message/code/context/cause fields."""
    err = PluginHostError("base failure", code="BASE_001", context={"plugin": "w"})

    assert err.message == "base failure"
    assert err.code == "BASE_001"
    assert err.context == {"plugin": "w"}
    assert err.cause is None


@pytest.mark.parametrize(
    ("error_class", "code"),
    [
        (ConfigError, "CONFIG_ERROR"),
        (ManifestValidationError, "MANIFEST_INVALID"),
        (AdapterNotFoundError, "ADAPTER_NOT_FOUND"),
        (LifecycleHookError, "LIFECYCLE_HOOK_FAILED"),
        (InvalidTransitionError, "INVALID_TRANSITION"),
        (VersionDetectionFailure, "VERSION_DETECTION_FAILED"),
    ],
)
def test_subclasses_have_default_codes(error_class: type[PluginHostError], code: str) -> None:
    """Each host error subclass should carry its stable default code."""
    err = error_class("boom")

    assert isinstance(err, PluginHostError)
    assert err.code == code


def test_manifest_validation_error_carries_errors_and_warnings() -> None:
    """ManifestValidationError should expose errors and warnings separately."""
    err = ManifestValidationError(
        "bad manifest",
        errors=["Missing plugin name"],
        warnings=["Unknown permission: telepathy"],
    )

    assert err.errors == ["Missing plugin name"]
    assert err.warnings == ["Unknown permission: telepathy"]
    assert err.context["errors"] == ["Missing plugin name"]


def test_lifecycle_hook_error_records_hook_and_plugin() -> None:
    """LifecycleHookError should name the failing hook and plugin."""
    err = LifecycleHookError("failed", hook="on_enable", plugin="weather")

    assert err.hook == "on_enable"
    assert err.plugin == "weather"
    assert err.context == {"hook": "on_enable", "plugin": "weather"}


def test_wrap_exception_chains_cause() -> None:
    """wrap_exception should keep the original error as cause and __cause__."""
    original = RuntimeError("hook exploded")

    wrapped = wrap_exception(
        original,
        LifecycleHookError,
        "Plugin w failed in on_install",
        hook="on_install",
        plugin="w",
    )

    assert isinstance(wrapped, LifecycleHookError)
    assert wrapped.cause is original
    assert wrapped.__cause__ is original
    assert wrapped.hook == "on_install"


def test_wrap_exception_overrides_code() -> None:
    """An explicit code should override the class default."""
    wrapped = wrap_exception(ValueError("x"), ConfigError, "bad", code="CONFIG_402")

    assert wrapped.code == "CONFIG_402"


def test_format_exception_includes_code_context_and_cause() -> None:
    """format_exception should render one readable line."""
    err = AdapterNotFoundError(
        "no adapter",
        context={"target_version": "7.0.0"},
        cause=KeyError("7.x"),
    )

    text = format_exception(err)

    assert text.startswith("[ADAPTER_NOT_FOUND] no adapter")
    assert "target_version='7.0.0'" in text
    assert "cause: KeyError" in text
    assert str(err) == text


def test_format_exception_for_generic_errors() -> None:
    """Non-host exceptions should render as Type: message."""
    assert format_exception(ValueError("nope")) == "ValueError: nope"
