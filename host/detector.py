"""Host runtime version and feature detection.

The detector is constructed explicitly by the host and resolves lazily, once,
on first query. Resolution order:

1. version advertised by the host surface,
2. environment override (``PLUGIN_HOST_VERSION`` by default),
3. configured override,
4. inference from which capabilities are present,
5. the configured fallback (oldest supported host).
"""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import Callable, Mapping
from typing import Any

from .capabilities import CREATE_CONTEXT, EVENTS, HTTP, STORAGE, USER, HostSurface
from .exceptions import VersionDetectionFailure
from .versioning import compare_versions, is_version_token, matches_pattern

logger = logging.getLogger(__name__)

DEFAULT_ENV_VAR = "PLUGIN_HOST_VERSION"
OLDEST_SUPPORTED_VERSION = "1.0.0"

Probe = Callable[[HostSurface], bool]


def _native(surface: HostSurface, name: str) -> Any:
    # Shims must not make an old host look new.
    if surface.is_shim(name):
        return None
    return surface.get(name)


def _probe_create_context(surface: HostSurface) -> bool:
    return callable(_native(surface, CREATE_CONTEXT))


def _probe_event_subscribe(surface: HostSurface) -> bool:
    events = _native(surface, EVENTS)
    return callable(getattr(events, "subscribe", None))


def _probe_async_storage(surface: HostSurface) -> bool:
    storage = _native(surface, STORAGE)
    return inspect.iscoroutinefunction(getattr(storage, "get", None))


def _probe_storage_keys(surface: HostSurface) -> bool:
    storage = _native(surface, STORAGE)
    return callable(getattr(storage, "keys", None))


def _probe_http_client(surface: HostSurface) -> bool:
    return _native(surface, HTTP) is not None


def _probe_user_identity(surface: HostSurface) -> bool:
    return _native(surface, USER) is not None


DEFAULT_PROBES: dict[str, Probe] = {
    "create_context": _probe_create_context,
    "event_subscribe": _probe_event_subscribe,
    "async_storage": _probe_async_storage,
    "storage_keys": _probe_storage_keys,
    "http_client": _probe_http_client,
    "user_identity": _probe_user_identity,
}

# First present feature wins; each implies at least the paired version.
VERSION_INFERENCE: tuple[tuple[str, str], ...] = (
    ("create_context", "2.0.0"),
    ("event_subscribe", "1.5.0"),
)


class VersionDetector:
    """Determine the host version and available features.

    Args:
        surface: Host capability surface to inspect.
        environ: Environment mapping; defaults to ``os.environ``.
        env_var: Environment variable holding a version override.
        override: Configured version override.
        fallback: Version assumed when nothing else resolves.
        probes: Feature probes by name; defaults to :data:`DEFAULT_PROBES`.
    """

    def __init__(
        self,
        surface: HostSurface,
        *,
        environ: Mapping[str, str] | None = None,
        env_var: str = DEFAULT_ENV_VAR,
        override: str | None = None,
        fallback: str = OLDEST_SUPPORTED_VERSION,
        probes: Mapping[str, Probe] | None = None,
    ) -> None:
        self._surface = surface
        self._environ = environ if environ is not None else os.environ
        self._env_var = env_var
        self._override = override
        self._fallback = fallback
        self._probes = dict(DEFAULT_PROBES if probes is None else probes)
        self._detected: tuple[str, dict[str, bool], str] | None = None

    def host_version(self) -> str:
        return self._ensure_detected()[0]

    def features(self) -> dict[str, bool]:
        return dict(self._ensure_detected()[1])

    def has_feature(self, name: str) -> bool:
        return self.features().get(name, False)

    def missing_features(self, names: list[str] | None = None) -> list[str]:
        """Return the requested (or all known) features that are absent."""
        features = self.features()
        wanted = names if names is not None else list(features)
        return [name for name in wanted if not features.get(name, False)]

    def is_at_least(self, version: str) -> bool:
        return compare_versions(self.host_version(), version) >= 0

    def is_before(self, version: str) -> bool:
        return compare_versions(self.host_version(), version) < 0

    def matches(self, pattern: str) -> bool:
        return matches_pattern(pattern, self.host_version())

    @property
    def source(self) -> str:
        """Which source produced the version: advertised, environment, config, probe or fallback."""
        return self._ensure_detected()[2]

    def refresh(self) -> None:
        """Discard cached results; the next query detects again."""
        self._detected = None

    def _ensure_detected(self) -> tuple[str, dict[str, bool], str]:
        if self._detected is not None:
            return self._detected

        features = self._probe_all()
        try:
            version, source = self._resolve_version(features)
        except VersionDetectionFailure as exc:
            logger.warning("%s; assuming host %s", exc.message, self._fallback)
            version, source = self._fallback, "fallback"

        logger.info("Host version %s (source: %s)", version, source)
        self._detected = (version, features, source)
        return self._detected

    def _probe_all(self) -> dict[str, bool]:
        features: dict[str, bool] = {}
        for name, probe in self._probes.items():
            try:
                features[name] = bool(probe(self._surface))
            except Exception:
                logger.debug("Feature probe %s failed; treating as absent", name, exc_info=True)
                features[name] = False
        return features

    def _resolve_version(self, features: Mapping[str, bool]) -> tuple[str, str]:
        candidates = (
            ("advertised", self._surface.version),
            ("environment", self._environ.get(self._env_var)),
            ("config", self._override),
        )
        for source, value in candidates:
            if value is None or value == "":
                continue
            if is_version_token(value):
                return value, source
            logger.warning("Ignoring invalid %s host version %r", source, value)

        for feature, implied in VERSION_INFERENCE:
            if features.get(feature):
                return implied, "probe"

        if any(features.values()):
            return OLDEST_SUPPORTED_VERSION, "probe"

        raise VersionDetectionFailure(
            "Host version could not be detected",
            context={"features": sorted(features)},
        )
