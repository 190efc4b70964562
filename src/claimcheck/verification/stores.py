"""Typed repositories over the storage collaborator.

Storage never raises; these wrappers turn a failed ``StorageResult`` into
``StorageException`` because losing a challenge or trust record silently
is not acceptable.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.exceptions import StorageException
from ..core.response import StorageResult
from ..storage import (
    ARCHIVED_REGISTRATIONS,
    CHALLENGES,
    REPOSITORY_OWNERSHIP,
    SWEEP_RESULTS,
    VERIFICATION_RECORDS,
    Storage,
)
from .models import (
    ArchivedRegistration,
    Challenge,
    ChallengeStatus,
    OwnershipGrant,
    SweepResult,
    VerificationRecord,
)

logger = logging.getLogger(__name__)


def require(result: StorageResult, collection: str, key: str | None = None) -> Any:
    """Return the payload of a successful result or raise."""
    if not result.success:
        logger.error(f"Storage failure on {collection}/{key}: {result.error}")
        raise StorageException(result.error or "storage operation failed", collection, key)
    return result.data


class ChallengeRepository:
    """Persists challenges keyed by id."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def save(self, challenge: Challenge) -> None:
        require(await self._storage.set(CHALLENGES, challenge.challenge_id, challenge.to_dict()), CHALLENGES, challenge.challenge_id)

    async def get(self, challenge_id: str) -> Challenge | None:
        data = require(await self._storage.get(CHALLENGES, challenge_id), CHALLENGES, challenge_id)
        return Challenge.from_dict(data) if data else None

    async def delete(self, challenge_id: str) -> None:
        require(await self._storage.delete(CHALLENGES, challenge_id), CHALLENGES, challenge_id)

    async def all(self) -> list[Challenge]:
        data = require(await self._storage.get_all(CHALLENGES), CHALLENGES)
        return sorted((Challenge.from_dict(item) for item in data.values()), key=lambda c: c.issued_at)

    async def for_subject(self, subject: str, pending_only: bool = False) -> list[Challenge]:
        challenges = [c for c in await self.all() if c.subject == subject]
        if pending_only:
            challenges = [c for c in challenges if c.status == ChallengeStatus.PENDING]
        return challenges


class RecordRepository:
    """Persists verification records keyed by subject."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def save(self, record: VerificationRecord) -> None:
        require(await self._storage.set(VERIFICATION_RECORDS, record.subject, record.to_dict()), VERIFICATION_RECORDS, record.subject)

    async def get(self, subject: str) -> VerificationRecord | None:
        data = require(await self._storage.get(VERIFICATION_RECORDS, subject), VERIFICATION_RECORDS, subject)
        return VerificationRecord.from_dict(data) if data else None

    async def delete(self, subject: str) -> None:
        require(await self._storage.delete(VERIFICATION_RECORDS, subject), VERIFICATION_RECORDS, subject)

    async def all(self) -> list[VerificationRecord]:
        data = require(await self._storage.get_all(VERIFICATION_RECORDS), VERIFICATION_RECORDS)
        return [VerificationRecord.from_dict(item) for _, item in sorted(data.items())]


class GrantRepository:
    """One active ownership grant per repository."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def save(self, grant: OwnershipGrant) -> None:
        require(
            await self._storage.set(REPOSITORY_OWNERSHIP, grant.repository, grant.to_dict()),
            REPOSITORY_OWNERSHIP,
            grant.repository,
        )

    async def get(self, repository: str) -> OwnershipGrant | None:
        data = require(await self._storage.get(REPOSITORY_OWNERSHIP, repository), REPOSITORY_OWNERSHIP, repository)
        return OwnershipGrant.from_dict(data) if data else None

    async def for_user(self, user_id: str) -> list[OwnershipGrant]:
        data = require(await self._storage.get_all(REPOSITORY_OWNERSHIP), REPOSITORY_OWNERSHIP)
        grants = (OwnershipGrant.from_dict(item) for item in data.values())
        return sorted((g for g in grants if g.owner_user_id == user_id), key=lambda g: g.repository)


class ArchiveRepository:
    """Cold storage for archived registrations and sweep summaries."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def archive(self, entry: ArchivedRegistration) -> str:
        key = entry.storage_key
        require(await self._storage.set(ARCHIVED_REGISTRATIONS, key, entry.to_dict()), ARCHIVED_REGISTRATIONS, key)
        return key

    async def for_subject(self, subject: str) -> list[ArchivedRegistration]:
        data = require(await self._storage.get_all(ARCHIVED_REGISTRATIONS), ARCHIVED_REGISTRATIONS)
        entries = (ArchivedRegistration.from_dict(item) for item in data.values())
        return sorted((e for e in entries if e.subject == subject), key=lambda e: e.archived_at)

    async def save_sweep(self, result: SweepResult) -> str:
        key = f"sweep_{int(result.checked_at.timestamp())}"
        require(await self._storage.set(SWEEP_RESULTS, key, result.to_dict()), SWEEP_RESULTS, key)
        return key
