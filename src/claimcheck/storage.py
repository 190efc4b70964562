# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Storage backends for challenges, verification records and grants.

Provides a pluggable key-value store organised in named collections.
Default is in-memory; the Redis backend is for deployments where pending
challenges and trust records must survive restarts.

Configure via environment variables:
    CLAIMCHECK_STORAGE=memory|redis  (default: memory)
    CLAIMCHECK_REDIS_URL=redis://localhost:6379  (default)

Backends never raise across this interface: every operation returns a
``StorageResult``.
"""

from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .core.config import CoreSettings
from .core.response import StorageResult, err, ok

logger = logging.getLogger(__name__)

# Collections used by the verification package
CHALLENGES = "challenges"
VERIFICATION_RECORDS = "verification_records"
REPOSITORY_OWNERSHIP = "repository_ownership"
ARCHIVED_REGISTRATIONS = "archived_registrations"
SWEEP_RESULTS = "sweep_results"
REGISTRY = "registry"


class Storage(ABC):
    """Abstract interface for collection-scoped key-value storage."""

    @abstractmethod
    async def get(self, collection: str, key: str) -> StorageResult:
        """Retrieve a record.

        Returns:
            ok(data) with the stored dict, ok(None) if the key is absent,
            or err(message) if the backend failed.
        """
        ...

    @abstractmethod
    async def set(self, collection: str, key: str, data: dict[str, Any]) -> StorageResult:
        """Store or overwrite a record."""
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> StorageResult:
        """Remove a record. Deleting a missing key succeeds."""
        ...

    @abstractmethod
    async def get_all(self, collection: str) -> StorageResult:
        """Retrieve every record in a collection.

        Returns:
            ok(dict) mapping key to record, or err(message).
        """
        ...


class MemoryStorage(Storage):
    """In-memory storage.

    Suitable for tests and single-process deployments. Records are copied on
    the way in and out so callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    async def get(self, collection: str, key: str) -> StorageResult:
        record = self._collections.get(collection, {}).get(key)
        return ok(copy.deepcopy(record) if record is not None else None)

    async def set(self, collection: str, key: str, data: dict[str, Any]) -> StorageResult:
        self._collections.setdefault(collection, {})[key] = copy.deepcopy(data)
        return ok()

    async def delete(self, collection: str, key: str) -> StorageResult:
        self._collections.get(collection, {}).pop(key, None)
        return ok()

    async def get_all(self, collection: str) -> StorageResult:
        return ok(copy.deepcopy(self._collections.get(collection, {})))

    def clear(self) -> None:
        """Clear all collections (useful for testing)."""
        self._collections.clear()


class RedisStorage(Storage):
    """Redis-backed storage.

    Each record is a JSON string under ``<prefix><collection>:<key>``.
    """

    def __init__(self, redis_url: str, key_prefix: str = "claimcheck:", client: Any = None) -> None:
        self._prefix = key_prefix
        self._client = client if client is not None else aioredis.Redis.from_url(redis_url, decode_responses=True)

    def _key(self, collection: str, key: str) -> str:
        return f"{self._prefix}{collection}:{key}"

    async def ping(self) -> bool:
        """Check connectivity. Returns False instead of raising."""
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def get(self, collection: str, key: str) -> StorageResult:
        try:
            raw = await self._client.get(self._key(collection, key))
        except RedisError as e:
            return err(f"Redis get failed for {collection}/{key}: {e}")
        if raw is None:
            return ok(None)
        try:
            return ok(json.loads(raw))
        except json.JSONDecodeError as e:
            return err(f"Corrupt record at {collection}/{key}: {e}")

    async def set(self, collection: str, key: str, data: dict[str, Any]) -> StorageResult:
        try:
            await self._client.set(self._key(collection, key), json.dumps(data, default=str))
        except RedisError as e:
            return err(f"Redis set failed for {collection}/{key}: {e}")
        return ok()

    async def delete(self, collection: str, key: str) -> StorageResult:
        try:
            await self._client.delete(self._key(collection, key))
        except RedisError as e:
            return err(f"Redis delete failed for {collection}/{key}: {e}")
        return ok()

    async def get_all(self, collection: str) -> StorageResult:
        prefix = self._key(collection, "")
        records: dict[str, Any] = {}
        try:
            async for redis_key in self._client.scan_iter(match=f"{prefix}*", count=100):
                raw = await self._client.get(redis_key)
                if raw is None:
                    continue
                records[redis_key[len(prefix) :]] = json.loads(raw)
        except RedisError as e:
            return err(f"Redis scan failed for {collection}: {e}")
        except json.JSONDecodeError as e:
            return err(f"Corrupt record in {collection}: {e}")
        return ok(records)

    async def close(self) -> None:
        await self._client.aclose()


# =============================================================================
# FACTORY
# =============================================================================


def create_storage(settings: CoreSettings) -> Storage:
    """Build the storage backend named by ``settings.storage_backend``.

    A new instance is returned on every call; callers own its lifetime.
    """
    if settings.storage_backend == "redis":
        logger.info("Using Redis storage")
        return RedisStorage(settings.redis_url, key_prefix=settings.redis_key_prefix)
    logger.info("Using in-memory storage")
    return MemoryStorage()
