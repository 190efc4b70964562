"""Moving registrations out of the active registry."""

from __future__ import annotations

import logging
from typing import Any

from ..core.logging import audit_logger
from ..registry import Registry
from .models import ArchivedRegistration, ArchiveReason, TrustStatus, VerificationRecord
from .state import TrustStateMachine
from .stores import ArchiveRepository, RecordRepository

logger = logging.getLogger(__name__)


def registry_fields(record: VerificationRecord) -> dict[str, Any]:
    """Trust fields mirrored onto the registry entry.

    A challenged record stays listed as verified: an open transfer claim
    proves nothing against the current owner until its DNS check passes.
    """
    return {
        "verified": record.trust_status in (TrustStatus.VERIFIED, TrustStatus.CHALLENGED),
        "trust_status": record.trust_status.value,
        "trust_score": record.trust_score,
        "verified_at": record.verified_at.isoformat(),
        "verification_expires_at": record.expires_at.isoformat(),
        "last_verification_check": (
            record.last_verification_check.isoformat() if record.last_verification_check else None
        ),
        "consecutive_failures": record.consecutive_failures,
    }


class Archiver:
    """Revokes a record, stores the registration in cold storage and unregisters it."""

    def __init__(
        self,
        registry: Registry,
        records: RecordRepository,
        archive: ArchiveRepository,
        state: TrustStateMachine,
    ):
        self.registry = registry
        self.records = records
        self.archive = archive
        self.state = state

    async def archive_subject(
        self,
        record: VerificationRecord,
        reason: ArchiveReason,
    ) -> ArchivedRegistration:
        """Archive ``record.subject``.

        The revoked record stays in the records collection so status lookups
        report it; only a fresh challenge can bring the subject back.
        """
        registration = await self.registry.get_by_domain(record.subject)
        revoked = self.state.revoke(record, reason.value)

        entry = ArchivedRegistration(
            subject=record.subject,
            reason=reason,
            archived_at=self.state.clock(),
            record=revoked.to_dict(),
            registration=registration,
        )
        key = await self.archive.archive(entry)
        await self.records.save(revoked)

        if registration is not None:
            await self.registry.unregister(record.subject)

        audit_logger.log_event(
            "archived",
            record.subject,
            level=logging.WARNING,
            reason=reason.value,
            archive_key=key,
            consecutive_failures=record.consecutive_failures,
        )
        return entry
