"""Plugin base class for the current (2.x) plugin contract.

Subclasses implement any of the optional lifecycle hooks:
``on_install``, ``on_uninstall``, ``on_enable``, ``on_disable``,
``on_update``, ``on_config_change`` and ``health_check``. A hook that is not
defined is simply skipped.
"""

from __future__ import annotations

from typing import Any

from host.context import PluginContext

CURRENT_SDK_VERSION = "2.0.0"


class Plugin:
    """Base class for plugins written against the current contract.

    Plugins are constructed with ``(context, config)``; the controller also
    calls :meth:`initialize` with the final context before ``on_install``.
    """

    sdk_version: str = CURRENT_SDK_VERSION

    def __init__(
        self,
        context: PluginContext | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        self.context = context
        self.config: dict[str, Any] = dict(config or {})

    def initialize(self, context: PluginContext) -> None:
        """Bind the runtime context."""
        self.context = context
        self.config = dict(context.config)

    def log(self, level: str, message: str, *args: Any) -> None:
        if self.context is None:
            return
        getattr(self.context.logger, level)(message, *args)

    def get_config(self, key: str | None = None, default: Any = None) -> Any:
        if key is None:
            return self.config
        return self.config.get(key, default)

    async def get_storage(self, key: str) -> Any:
        """Read ``key`` from plugin storage; ``None`` when storage fails."""
        if self.context is None:
            return None
        try:
            return await self.context.storage.get(key)
        except Exception:
            self.log("exception", "Failed to get storage key %s", key)
            return None

    async def set_storage(self, key: str, value: Any) -> bool:
        """Write ``key`` to plugin storage; return whether it succeeded."""
        if self.context is None:
            return False
        try:
            await self.context.storage.set(key, value)
        except Exception:
            self.log("exception", "Failed to set storage key %s", key)
            return False
        return True
