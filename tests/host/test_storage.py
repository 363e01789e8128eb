"""Unit tests for in-memory plugin storage."""

from __future__ import annotations

import asyncio

import pytest

from host.capabilities import StorageProtocol
from host.storage import MemoryStorage


@pytest.mark.asyncio
async def test_set_get_delete() -> None:
    """MemoryStorage should round-trip and delete values."""
    storage = MemoryStorage()

    await storage.set("city", {"name": "Oslo"})
    assert await storage.get("city") == {"name": "Oslo"}

    await storage.delete("city")
    assert await storage.get("city") is None


@pytest.mark.asyncio
async def test_ttl_expiration() -> None:
    """Values should expire after their ttl."""
    storage = MemoryStorage()
    await storage.set("short", "ok", ttl=0.05)

    await asyncio.sleep(0.1)

    assert await storage.get("short") is None
    assert await storage.keys() == []


@pytest.mark.asyncio
async def test_scoped_views_do_not_see_each_other() -> None:
    """Namespaced views over one backend keep keys apart."""
    backend = MemoryStorage()
    alpha = backend.scoped("alpha")
    beta = backend.scoped("beta")

    await alpha.set("token", "a")
    await beta.set("token", "b")
    await beta.set("extra", 1)

    assert await alpha.get("token") == "a"
    assert await alpha.keys() == ["token"]
    assert await beta.keys() == ["extra", "token"]

    await beta.clear()
    assert await beta.keys() == []
    assert await alpha.get("token") == "a"


def test_satisfies_storage_protocol() -> None:
    """MemoryStorage should satisfy the storage capability protocol."""
    assert isinstance(MemoryStorage(), StorageProtocol)
