"""Unit tests for the plugin hook descriptor."""

from __future__ import annotations

import pytest

from plugins.hooks import PluginHooks


class _Partial:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.on_update = "not callable"

    def on_enable(self, context: object) -> str:
        self.calls.append("enable")
        return "sync"

    async def health_check(self, context: object) -> dict[str, str]:
        return {"status": "healthy"}


def test_descriptor_records_implemented_hooks() -> None:
    """Only callable hooks should be recorded as implemented."""
    hooks = PluginHooks.from_plugin(_Partial())

    assert hooks.implemented == ["on_enable", "health_check"]
    assert hooks.has("on_update") is False
    assert hooks.has("on_disable") is False


def test_descriptor_is_read_only() -> None:
    """The hook table cannot be mutated after load."""
    hooks = PluginHooks.from_plugin(_Partial())

    with pytest.raises(TypeError):
        hooks.hooks["on_disable"] = print  # type: ignore[index]


@pytest.mark.asyncio
async def test_call_handles_sync_async_and_absent_hooks() -> None:
    """call should await coroutines and no-op for absent hooks."""
    plugin = _Partial()
    hooks = PluginHooks.from_plugin(plugin)

    assert await hooks.call("on_enable", None) == "sync"
    assert await hooks.call("health_check", None) == {"status": "healthy"}
    assert await hooks.call("on_disable", None) is None
    assert plugin.calls == ["enable"]
