"""Plugin contract, compatibility adapters and lifecycle management."""

from .adapters import (
    AdaptedPlugin,
    AdapterRegistry,
    ClassAdapterV1,
    CompatibilityAdapter,
    ModuleAdapterV0,
    create_default_registry,
)
from .base import CURRENT_SDK_VERSION, Plugin
from .hooks import PluginHooks
from .lifecycle import HealthStatus, LifecycleController, PluginState
from .manager import PluginManager
from .manifest import PluginManifest, ValidationResult, validate_manifest
from .services import HostServices, create_host_services

__all__ = [
    "CURRENT_SDK_VERSION",
    "Plugin",
    "PluginHooks",
    "PluginManifest",
    "ValidationResult",
    "validate_manifest",
    "AdaptedPlugin",
    "CompatibilityAdapter",
    "ClassAdapterV1",
    "ModuleAdapterV0",
    "AdapterRegistry",
    "create_default_registry",
    "HostServices",
    "create_host_services",
    "PluginState",
    "HealthStatus",
    "LifecycleController",
    "PluginManager",
]
