"""Lifecycle hook descriptor.

A :class:`PluginHooks` is built once when a plugin is loaded. It records which
hooks the plugin implements so later transitions do not probe the plugin
object again.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

ON_INSTALL = "on_install"
ON_UNINSTALL = "on_uninstall"
ON_ENABLE = "on_enable"
ON_DISABLE = "on_disable"
ON_UPDATE = "on_update"
ON_CONFIG_CHANGE = "on_config_change"
HEALTH_CHECK = "health_check"
INITIALIZE = "initialize"
CLEANUP = "cleanup"

HOOK_NAMES: tuple[str, ...] = (
    INITIALIZE,
    ON_INSTALL,
    ON_UNINSTALL,
    ON_ENABLE,
    ON_DISABLE,
    ON_UPDATE,
    ON_CONFIG_CHANGE,
    HEALTH_CHECK,
    CLEANUP,
)


@dataclass(frozen=True, slots=True)
class PluginHooks:
    """Which current-contract hooks a plugin object implements.

    Attributes:
        plugin: The (possibly adapted) plugin object.
        hooks: Hook name to bound callable, or ``None`` when absent.
    """

    plugin: Any
    hooks: Mapping[str, Callable[..., Any] | None] = field(default_factory=dict)

    @classmethod
    def from_plugin(cls, plugin: Any) -> PluginHooks:
        found: dict[str, Callable[..., Any] | None] = {}
        for name in HOOK_NAMES:
            hook = getattr(plugin, name, None)
            found[name] = hook if callable(hook) else None
        return cls(plugin=plugin, hooks=MappingProxyType(found))

    def has(self, name: str) -> bool:
        return self.hooks.get(name) is not None

    @property
    def implemented(self) -> list[str]:
        return [name for name in HOOK_NAMES if self.has(name)]

    async def call(self, name: str, *args: Any) -> Any:
        """Invoke hook ``name`` and await it if it returns an awaitable.

        Absent hooks are a no-op and return ``None``.
        """
        hook = self.hooks.get(name)
        if hook is None:
            return None
        result = hook(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
