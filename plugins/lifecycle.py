"""Plugin lifecycle state machine.

One :class:`LifecycleController` drives one plugin::

    uninstalled -> installed -> enabled <-> disabled -> uninstalled

A failing hook moves the plugin to ``error`` until :meth:`reset`;
``destroyed`` is terminal. Transitions on one plugin are serialized: a
request made while another is in flight waits for it to finish.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from host.capabilities import CREATE_CONTEXT
from host.context import PluginContext, UserIdentity
from host.exceptions import (
    AdapterNotFoundError,
    InvalidTransitionError,
    LifecycleHookError,
    wrap_exception,
)
from host.polyfills import SurfaceContextFactory
from host.versioning import is_version_token

from .adapters import AdaptedPlugin, resolve_target_version
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
    PluginHooks,
)
from .manifest import PluginManifest, is_plugin_compatible, validate_manifest
from .services import HostServices

logger = logging.getLogger(__name__)


class PluginState(str, Enum):
    """Lifecycle states of one plugin."""

    UNINSTALLED = "uninstalled"
    INSTALLED = "installed"
    ENABLED = "enabled"
    DISABLED = "disabled"
    ERROR = "error"
    DESTROYED = "destroyed"


@dataclass(frozen=True, slots=True)
class HealthStatus:
    """Result of a health probe. A timeout is reported here, not raised."""

    status: Literal["healthy", "unhealthy"]
    details: str | None = None

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"


class LifecycleController:
    """Drive one plugin through its lifecycle.

    Args:
        manifest: Raw manifest mapping as shipped with the plugin.
        plugin: Plugin object, plugin class, or legacy plugin.
        services: Host services shared by all controllers.
        user: Identity exposed to the plugin through its context.
        target_version: Contract version the plugin targets, when the host
            knows it; otherwise it is resolved from the plugin and manifest.
    """

    def __init__(
        self,
        manifest: Mapping[str, Any],
        plugin: Any,
        services: HostServices,
        *,
        user: UserIdentity | None = None,
        target_version: str | None = None,
    ) -> None:
        if target_version is not None and not is_version_token(target_version):
            raise ValueError(f"Invalid target version: {target_version!r}")

        self.services = services
        self._raw_manifest = dict(manifest)
        self._plugin = plugin
        self._user = user
        self._target_version = target_version
        self._state = PluginState.UNINSTALLED
        self._lock = asyncio.Lock()

        self.manifest: PluginManifest | None = None
        self.adapted: AdaptedPlugin | None = None
        self.hooks: PluginHooks | None = None
        self.context: PluginContext | None = None
        self.last_error: LifecycleHookError | None = None

    @property
    def name(self) -> str:
        return str(self._raw_manifest.get("name") or "<unnamed>")

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def is_operational(self) -> bool:
        """Only an enabled plugin may have its widgets or commands invoked."""
        return self._state is PluginState.ENABLED

    async def install(self, config: Mapping[str, Any] | None = None) -> None:
        """Validate, adapt and install the plugin.

        Raises:
            InvalidTransitionError: If the plugin is not uninstalled.
            ManifestValidationError: If the manifest is invalid.
            AdapterNotFoundError: If the plugin targets an unsupported contract.
            LifecycleHookError: If ``initialize`` or ``on_install`` raised.
        """
        async with self._lock:
            self._require("install", PluginState.UNINSTALLED)

            raw, adapted = self._resolve()
            manifest = PluginManifest.from_dict(raw)
            for warning in validate_manifest(raw).warnings:
                logger.warning("Manifest %s: %s", manifest.name, warning)

            host_version = self.services.detector.host_version()
            if not is_plugin_compatible(manifest, host_version):
                logger.warning(
                    "Plugin %s declares host range [%s, %s]; running on %s",
                    manifest.name,
                    manifest.min_host_version,
                    manifest.max_host_version,
                    host_version,
                )

            self._ensure_polyfills(adapted.polyfills_required)
            context = self._build_context(manifest, config)
            self.manifest = manifest
            self.adapted = adapted
            self.context = context
            try:
                instance = self._instantiate(adapted.plugin, context)
            except Exception as exc:
                raise self._fail("__init__", exc) from exc
            self.hooks = PluginHooks.from_plugin(instance)

            await self._run_hook(INITIALIZE, context)
            await self._run_hook(ON_INSTALL, context)
            self._set_state(PluginState.INSTALLED)

    async def enable(self) -> None:
        async with self._lock:
            self._require("enable", PluginState.INSTALLED, PluginState.DISABLED)
            await self._run_hook(ON_ENABLE, self.context)
            self._set_state(PluginState.ENABLED)

    async def disable(self) -> None:
        """Disable the plugin; its timers are cancelled even if the hook fails.

        Raises:
            LifecycleHookError: After settling in ``disabled``, if the hook raised.
        """
        async with self._lock:
            self._require("disable", PluginState.ENABLED)
            hooks, context = self._live("disable")

            error: LifecycleHookError | None = None
            try:
                with context.activate():
                    await hooks.call(ON_DISABLE, context)
            except Exception as exc:
                error = self._wrap(ON_DISABLE, exc)
            finally:
                context.timers.cancel_all()

            self._set_state(PluginState.DISABLED)
            if error is not None:
                self.last_error = error
                logger.error("Plugin %s disable hook failed: %s", self.name, error.cause)
                raise error

    async def update(self, old_version: str, new_version: str) -> None:
        """Notify the plugin that it was updated from ``old_version`` to ``new_version``."""
        async with self._lock:
            self._require("update", PluginState.ENABLED, PluginState.DISABLED)
            if not is_version_token(new_version):
                raise ValueError(f"Invalid plugin version: {new_version!r}")
            _, context = self._live("update")
            if self.manifest is None:
                raise self._invalid("update")

            context.plugin_version = new_version
            self.manifest = self.manifest.model_copy(update={"version": new_version})
            await self._run_hook(ON_UPDATE, context, old_version)

    async def config_change(
        self, old_config: Mapping[str, Any], new_config: Mapping[str, Any]
    ) -> None:
        """Apply ``new_config``; a config equal to the current one is a no-op."""
        async with self._lock:
            self._require("config_change", PluginState.ENABLED)
            _, context = self._live("config_change")

            if dict(new_config) == context.config:
                logger.debug("Plugin %s config unchanged; skipping hook", self.name)
                return

            context.config = dict(new_config)
            await self._run_hook(ON_CONFIG_CHANGE, context, dict(old_config))

    async def uninstall(self) -> None:
        async with self._lock:
            self._require("uninstall", PluginState.INSTALLED, PluginState.DISABLED)
            _, context = self._live("uninstall")
            try:
                await self._run_hook(ON_UNINSTALL, context)
                await self._run_hook(CLEANUP)
            finally:
                context.timers.cancel_all()
            self._set_state(PluginState.UNINSTALLED)

    async def destroy(self) -> None:
        """Tear the plugin down for good; ``destroyed`` is terminal.

        Raises:
            LifecycleHookError: After settling in ``destroyed``, if cleanup raised.
        """
        async with self._lock:
            if self._state in (PluginState.UNINSTALLED, PluginState.DESTROYED):
                raise self._invalid("destroy")

            error: LifecycleHookError | None = None
            if self.context is not None:
                self.context.timers.cancel_all()
            if self.hooks is not None:
                try:
                    await self.hooks.call(CLEANUP)
                except Exception as exc:
                    error = self._wrap(CLEANUP, exc)

            self._set_state(PluginState.DESTROYED)
            if error is not None:
                self.last_error = error
                raise error

    async def reset(self) -> None:
        """Recover from ``error`` back to ``uninstalled`` so it can be reinstalled."""
        async with self._lock:
            self._require("reset", PluginState.ERROR)
            if self.context is not None:
                self.context.timers.cancel_all()
            self.hooks = None
            self.adapted = None
            self.context = None
            self.last_error = None
            self._set_state(PluginState.UNINSTALLED)

    async def health_check(self, timeout: float | None = None) -> HealthStatus:
        """Probe plugin health; never waits longer than ``timeout`` seconds.

        Not a transition: it does not queue behind in-flight transitions.
        """
        if timeout is None:
            timeout = self.services.config.lifecycle.health_check_timeout

        if self._state is PluginState.ERROR:
            cause = self.last_error.cause if self.last_error is not None else None
            return HealthStatus("unhealthy", f"Plugin in error state: {cause}")
        if self._state in (PluginState.UNINSTALLED, PluginState.DESTROYED):
            return HealthStatus("unhealthy", f"Plugin is {self._state.value}")
        hooks, context = self.hooks, self.context
        if hooks is None or context is None:
            return HealthStatus("unhealthy", f"Plugin {self.name} is not loaded")

        if not hooks.has(HEALTH_CHECK):
            return HealthStatus("healthy")

        try:
            with context.activate():
                result = await asyncio.wait_for(hooks.call(HEALTH_CHECK, context), timeout)
        except TimeoutError:
            logger.warning("Plugin %s health check timed out", self.name)
            return HealthStatus(
                "unhealthy", f"Health check timeout after {timeout * 1000:.0f}ms"
            )
        except Exception as exc:
            return HealthStatus("unhealthy", f"Health check failed: {exc}")

        return _normalize_health(result)

    def _resolve(self) -> tuple[dict[str, Any], AdaptedPlugin]:
        raw = dict(self._raw_manifest)
        if self._target_version is not None:
            target, limitations = self._target_version, []
        else:
            target, limitations = resolve_target_version(self._plugin, raw)

        registry = self.services.adapters
        if not registry.needs_adaptation(target):
            return raw, AdaptedPlugin(
                plugin=self._plugin, source_version=target, limitations=limitations
            )

        adapter = registry.get_adapter(target)
        if adapter is None:
            raise AdapterNotFoundError(
                f"No compatibility adapter for {self.name} (contract {target})",
                context={"plugin": self.name, "target_version": target},
            )

        raw, notices = adapter.translate_manifest(raw)
        adapted = adapter.adapt(self._plugin, target)
        adapted.warnings[:0] = notices
        adapted.limitations[:0] = limitations
        for limitation in adapted.limitations:
            logger.info("Plugin %s: %s", self.name, limitation)
        return raw, adapted

    def _ensure_polyfills(self, required: Iterable[str]) -> None:
        services = self.services
        missing = [
            feature
            for feature in required
            if not services.detector.has_feature(feature)
            and not services.polyfills.is_installed(feature)
        ]
        if not missing:
            return
        if not services.config.polyfills.autoinstall:
            logger.warning(
                "Plugin %s needs missing host features %s; autoinstall is off",
                self.name,
                ", ".join(missing),
            )
            return
        services.polyfills.install(missing)

    def _build_context(
        self, manifest: PluginManifest, config: Mapping[str, Any] | None
    ) -> PluginContext:
        surface = self.services.surface
        factory = surface.get(CREATE_CONTEXT)
        if not callable(factory):
            factory = SurfaceContextFactory(surface)

        effective = dict(manifest.default_config)
        if config is not None:
            effective.update(config)
        return factory(
            manifest.name,
            manifest.version,
            config=effective,
            permissions=manifest.permission_tokens,
            user=self._user,
        )

    @staticmethod
    def _instantiate(plugin: Any, context: PluginContext) -> Any:
        if inspect.isclass(plugin):
            return plugin(context, dict(context.config))
        return plugin

    async def _run_hook(self, name: str, *args: Any) -> None:
        hooks, context = self._live(name)
        try:
            with context.activate():
                await hooks.call(name, *args)
        except Exception as exc:
            raise self._fail(name, exc) from exc

    def _live(self, transition: str) -> tuple[PluginHooks, PluginContext]:
        if self.hooks is None or self.context is None:
            raise self._invalid(transition)
        return self.hooks, self.context

    def _fail(self, hook: str, exc: Exception) -> LifecycleHookError:
        error = self._wrap(hook, exc)
        self.last_error = error
        # timers started before the failure must not keep running in error
        if self.context is not None:
            self.context.timers.cancel_all()
        self._set_state(PluginState.ERROR)
        logger.error("Plugin %s hook %s failed: %s", self.name, hook, exc)
        return error

    def _wrap(self, hook: str, exc: Exception) -> LifecycleHookError:
        return wrap_exception(
            exc,
            LifecycleHookError,
            f"Plugin {self.name} failed in {hook}",
            hook=hook,
            plugin=self.name,
            context={"state": self._state.value},
        )

    def _require(self, transition: str, *allowed: PluginState) -> None:
        if self._state not in allowed:
            raise self._invalid(transition, allowed)

    def _invalid(
        self, transition: str, allowed: Iterable[PluginState] = ()
    ) -> InvalidTransitionError:
        return InvalidTransitionError(
            f"Cannot {transition} plugin {self.name} from state {self._state.value}",
            context={
                "plugin": self.name,
                "state": self._state.value,
                "allowed": [state.value for state in allowed],
            },
        )

    def _set_state(self, state: PluginState) -> None:
        if state is not self._state:
            logger.info("Plugin %s: %s -> %s", self.name, self._state.value, state.value)
        self._state = state


def _normalize_health(result: Any) -> HealthStatus:
    if isinstance(result, HealthStatus):
        return result
    if result is None or result is True:
        return HealthStatus("healthy")
    if result is False:
        return HealthStatus("unhealthy")
    if isinstance(result, Mapping):
        status = result.get("status")
        details = result.get("details")
        return HealthStatus(
            "healthy" if status == "healthy" else "unhealthy",
            None if details is None else str(details),
        )
    return HealthStatus("unhealthy", f"Unrecognized health result: {result!r}")
