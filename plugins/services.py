"""Host-wide services shared by every plugin controller.

The host process builds one :class:`HostServices` at startup and injects it
into each controller; nothing here is a module-level singleton.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from host.capabilities import CREATE_CONTEXT, EVENTS, STORAGE, HostSurface
from host.config import HostConfig
from host.deprecation import DeprecationManager
from host.detector import VersionDetector
from host.events import EventBus
from host.polyfills import PolyfillInstaller, SurfaceContextFactory
from host.storage import MemoryStorage

from .adapters import AdapterRegistry, create_default_registry


@dataclass(slots=True)
class HostServices:
    """Process-lifetime services owned by the host's plugin manager."""

    config: HostConfig
    surface: HostSurface
    detector: VersionDetector
    deprecations: DeprecationManager
    polyfills: PolyfillInstaller
    adapters: AdapterRegistry


def create_default_surface() -> HostSurface:
    """Surface of the bundled host: in-memory storage, event bus, context factory."""
    surface = HostSurface({STORAGE: MemoryStorage(), EVENTS: EventBus()})
    surface.provide(CREATE_CONTEXT, SurfaceContextFactory(surface))
    return surface


def create_host_services(
    config: HostConfig | None = None,
    surface: HostSurface | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> HostServices:
    """Build the service set for one host process.

    Args:
        config: Host configuration; defaults to :class:`HostConfig` defaults.
        surface: Capability surface; defaults to :func:`create_default_surface`.
        environ: Environment used for the version override lookup.
    """
    config = config or HostConfig()
    surface = surface if surface is not None else create_default_surface()

    deprecations = DeprecationManager(
        config.deprecation.max_warnings_per_feature,
        enabled=config.deprecation.enabled,
    )
    detector = VersionDetector(
        surface,
        environ=environ,
        env_var=config.version.env_var,
        override=config.version.override,
        fallback=config.version.fallback,
    )
    return HostServices(
        config=config,
        surface=surface,
        detector=detector,
        deprecations=deprecations,
        polyfills=PolyfillInstaller(surface),
        adapters=create_default_registry(deprecations),
    )
