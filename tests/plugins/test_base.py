"""Unit tests for the current-contract plugin base class."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from host.polyfills import SurfaceContextFactory
from plugins.base import CURRENT_SDK_VERSION, Plugin
from plugins.services import create_default_surface


class _FailingStorage:
    async def get(self, key: str) -> Any:
        raise OSError("backend down")

    async def set(self, key: str, value: Any) -> None:
        raise OSError("backend down")


def _context(config: dict[str, Any] | None = None) -> Any:
    return SurfaceContextFactory(create_default_surface())("notes", "1.0.0", config=config or {})


def test_defaults_target_current_contract() -> None:
    """Plugins declare the current contract version."""
    assert Plugin.sdk_version == CURRENT_SDK_VERSION == "2.0.0"


def test_initialize_binds_context_and_config() -> None:
    """initialize should bind the context and copy its config."""
    plugin = Plugin()
    context = _context({"limit": 3})

    plugin.initialize(context)

    assert plugin.context is context
    assert plugin.get_config("limit") == 3
    assert plugin.get_config("missing", "x") == "x"
    assert plugin.get_config() == {"limit": 3}


def test_log_goes_through_plugin_logger(caplog: pytest.LogCaptureFixture) -> None:
    """log should use the context logger tagged with the plugin name."""
    plugin = Plugin(_context())

    with caplog.at_level(logging.INFO, logger="plugins.notes"):
        plugin.log("info", "saved %s", "draft")

    assert caplog.records[-1].getMessage() == "saved draft"
    assert caplog.records[-1].plugin == "notes"


@pytest.mark.asyncio
async def test_storage_helpers_round_trip() -> None:
    """get_storage/set_storage use the plugin's scoped storage."""
    plugin = Plugin(_context())

    assert await plugin.set_storage("draft", "hello") is True
    assert await plugin.get_storage("draft") == "hello"


@pytest.mark.asyncio
async def test_storage_helpers_report_failures() -> None:
    """Storage errors are logged and reported through return values."""
    context = _context()
    context.storage = _FailingStorage()
    plugin = Plugin(context)

    assert await plugin.get_storage("draft") is None
    assert await plugin.set_storage("draft", "x") is False
    assert await Plugin().get_storage("draft") is None
