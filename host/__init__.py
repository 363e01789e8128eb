"""
plugin-host-core - host-side runtime for plugin compatibility and lifecycle
"""

__version__ = "0.1.0"
__author__ = "Plugin Host Team"

from host.capabilities import HostSurface
from host.context import PluginContext, UserIdentity, get_current_context
from host.deprecation import DeprecationManager, DeprecationNotice
from host.detector import VersionDetector
from host.polyfills import PolyfillInstaller

__all__ = [
    "HostSurface",
    "PluginContext",
    "UserIdentity",
    "get_current_context",
    "DeprecationManager",
    "DeprecationNotice",
    "VersionDetector",
    "PolyfillInstaller",
]
