# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Registry collaborator interface.

The registry owns server metadata for each subject (domain or ``owner/repo``).
Verification only needs to read entries, apply trust-state updates, and
remove archived subjects. ``StorageRegistry`` is a reference implementation
on top of ``Storage`` for tests, development and the CLI.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from .core.exceptions import StorageException
from .storage import REGISTRY, Storage

logger = logging.getLogger(__name__)


@runtime_checkable
class Registry(Protocol):
    """Protocol for the server registry consumed by verification."""

    async def get_by_domain(self, subject: str) -> dict[str, Any] | None:
        """Return the registry entry for a subject, or None."""
        ...

    async def list_subjects(self) -> list[str]:
        """Return every subject currently registered."""
        ...

    async def update(self, subject: str, updates: dict[str, Any]) -> bool:
        """Merge ``updates`` into an entry. Returns False if it does not exist."""
        ...

    async def unregister(self, subject: str) -> bool:
        """Remove an entry. Returns False if it did not exist."""
        ...


class StorageRegistry:
    """Registry backed by a ``Storage`` collection."""

    def __init__(self, storage: Storage, collection: str = REGISTRY):
        self._storage = storage
        self._collection = collection

    async def _get(self, subject: str) -> dict[str, Any] | None:
        result = await self._storage.get(self._collection, subject)
        if not result.success:
            raise StorageException(result.error or "registry read failed", self._collection, subject)
        return result.data

    async def _set(self, subject: str, entry: dict[str, Any]) -> None:
        result = await self._storage.set(self._collection, subject, entry)
        if not result.success:
            raise StorageException(result.error or "registry write failed", self._collection, subject)

    async def register(self, subject: str, entry: dict[str, Any] | None = None) -> dict[str, Any]:
        """Create or replace a registry entry."""
        data = dict(entry or {})
        data["domain"] = subject
        await self._set(subject, data)
        return data

    async def get_by_domain(self, subject: str) -> dict[str, Any] | None:
        return await self._get(subject)

    async def list_subjects(self) -> list[str]:
        result = await self._storage.get_all(self._collection)
        if not result.success:
            raise StorageException(result.error or "registry scan failed", self._collection)
        return sorted(result.data.keys())

    async def update(self, subject: str, updates: dict[str, Any]) -> bool:
        entry = await self._get(subject)
        if entry is None:
            return False
        entry.update(updates)
        await self._set(subject, entry)
        return True

    async def unregister(self, subject: str) -> bool:
        entry = await self._get(subject)
        if entry is None:
            return False
        result = await self._storage.delete(self._collection, subject)
        if not result.success:
            raise StorageException(result.error or "registry delete failed", self._collection, subject)
        logger.info(f"Unregistered {subject}")
        return True
