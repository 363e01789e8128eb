"""Plugin manager implementation.

This module keeps one lifecycle controller per loaded plugin and offers
host-wide operations over them: health reporting and ordered shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from host.context import UserIdentity
from host.exceptions import PluginHostError

from .lifecycle import HealthStatus, LifecycleController, PluginState
from .services import HostServices, create_host_services

logger = logging.getLogger(__name__)


class PluginManager:
    """Manage plugin registration and host-wide lifecycle operations."""

    def __init__(self, services: HostServices | None = None) -> None:
        """Initialize an empty plugin manager.

        Args:
            services: Shared host services; built from defaults when omitted.
        """
        self.services = services if services is not None else create_host_services()
        self._controllers: dict[str, LifecycleController] = {}

    def load(
        self,
        manifest: Mapping[str, Any],
        plugin: Any,
        *,
        user: UserIdentity | None = None,
        target_version: str | None = None,
    ) -> LifecycleController:
        """Register a plugin and return its (uninstalled) controller.

        Args:
            manifest: Raw plugin manifest.
            plugin: Plugin object, class or legacy module.
            user: Identity exposed through the plugin context.
            target_version: Contract version, when already known.

        Raises:
            ValueError: If the manifest has no name or the name is taken.
        """
        name = manifest.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Plugin manifest has no name")
        if name in self._controllers:
            raise ValueError(f"Plugin already registered: {name}")

        controller = LifecycleController(
            manifest,
            plugin,
            self.services,
            user=user,
            target_version=target_version,
        )
        self._controllers[name] = controller
        return controller

    def unregister(self, name: str) -> None:
        """Forget plugin ``name``; its lifecycle is not touched."""
        self._controllers.pop(name, None)

    def get(self, name: str) -> LifecycleController | None:
        """Get controller by plugin name."""
        return self._controllers.get(name)

    def get_all(self) -> list[LifecycleController]:
        """Return all controllers in load order."""
        return list(self._controllers.values())

    def has(self, name: str) -> bool:
        return name in self._controllers

    def states(self) -> dict[str, PluginState]:
        return {name: controller.state for name, controller in self._controllers.items()}

    async def health_report(self, timeout: float | None = None) -> dict[str, HealthStatus]:
        """Probe every plugin concurrently.

        A slow plugin only delays the report by at most ``timeout``.
        """
        names = list(self._controllers)
        results = await asyncio.gather(
            *(self._controllers[name].health_check(timeout) for name in names)
        )
        return dict(zip(names, results))

    async def shutdown(self) -> list[str]:
        """Destroy live plugins in reverse load order.

        A plugin whose cleanup fails is logged and shutdown carries on.

        Returns:
            Names of plugins whose cleanup failed.
        """
        failed: list[str] = []
        for name in reversed(list(self._controllers)):
            controller = self._controllers[name]
            if controller.state in (PluginState.UNINSTALLED, PluginState.DESTROYED):
                continue
            try:
                await controller.destroy()
            except PluginHostError as exc:
                logger.error("Plugin %s failed during shutdown: %s", name, exc)
                failed.append(name)
        return failed
