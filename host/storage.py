"""In-memory plugin storage backend."""

from __future__ import annotations

import time
from threading import RLock
from typing import Any


class MemoryStorage:
    """Asynchronous in-memory key-value storage with optional TTL.

    Several plugins may share one backing dict; ``namespace`` keeps their keys
    apart. The host decides whether that sharing is acceptable.
    """

    def __init__(
        self,
        namespace: str = "",
        *,
        _data: dict[str, tuple[Any, float | None]] | None = None,
        _lock: Any = None,
    ) -> None:
        self._namespace = namespace
        self._data: dict[str, tuple[Any, float | None]] = _data if _data is not None else {}
        self._lock = _lock or RLock()

    def scoped(self, namespace: str) -> MemoryStorage:
        """Return a view of the same backend restricted to ``namespace``."""
        return MemoryStorage(namespace, _data=self._data, _lock=self._lock)

    async def get(self, key: str) -> Any | None:
        full_key = self._key(key)
        with self._lock:
            item = self._data.get(full_key)
            if item is None:
                return None

            value, expires_at = item
            if self._is_expired(expires_at):
                self._data.pop(full_key, None)
                return None
            return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        full_key = self._key(key)
        expires_at = None if ttl is None else time.time() + ttl
        with self._lock:
            if ttl is not None and ttl <= 0:
                self._data.pop(full_key, None)
                return
            self._data[full_key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(self._key(key), None)

    async def keys(self) -> list[str]:
        prefix = self._prefix()
        with self._lock:
            live = [
                key
                for key, (_, expires_at) in self._data.items()
                if key.startswith(prefix) and not self._is_expired(expires_at)
            ]
        return sorted(key[len(prefix) :] for key in live)

    async def clear(self) -> None:
        prefix = self._prefix()
        with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                self._data.pop(key, None)

    def _prefix(self) -> str:
        return f"{self._namespace}:" if self._namespace else ""

    def _key(self, key: str) -> str:
        return f"{self._prefix()}{key}"

    @staticmethod
    def _is_expired(expires_at: float | None) -> bool:
        return expires_at is not None and time.time() >= expires_at
