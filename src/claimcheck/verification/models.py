# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Data model for ownership challenges and trust records.

All timestamps are timezone-aware UTC and serialise to ISO-8601. Enum
fields serialise to their string values so records round-trip through any
``Storage`` backend.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

# =============================================================================
# ENUMS
# =============================================================================


class ProofChannel(StrEnum):
    """Where the owner publishes the proof."""

    DNS = "dns"  # TXT record
    REPOSITORY = "repository"  # hash file committed to a repository


class ChallengeType(StrEnum):
    """Why a challenge was issued."""

    DOMAIN_VERIFICATION = "domain_verification"
    REPOSITORY_OWNERSHIP = "repository_ownership"
    OWNERSHIP_TRANSFER = "ownership_transfer"


class ChallengeStatus(StrEnum):
    """Lifecycle of a challenge."""

    PENDING = "pending"  # Issued, awaiting proof
    VERIFIED = "verified"  # Proof accepted
    FAILED = "failed"  # Superseded or rejected, terminal
    EXPIRED = "expired"  # TTL exceeded, terminal


class TrustStatus(StrEnum):
    """Long-lived trust state of a verified subject."""

    VERIFIED = "verified"
    UNVERIFIED = "unverified"  # Failed a re-check, inside the grace period
    CHALLENGED = "challenged"  # Ownership transfer challenge open
    REVOKED = "revoked"  # Terminal, requires a fresh challenge


class ArchiveReason(StrEnum):
    """Why a registration left the active registry."""

    GRACE_PERIOD_EXPIRED = "grace_period_expired"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    ADMINISTRATIVE_REVOCATION = "administrative_revocation"


class FailureReason(StrEnum):
    """Machine-readable reason attached to a failed verification."""

    CHALLENGE_NOT_FOUND = "challenge_not_found"
    CHALLENGE_EXPIRED = "challenge_expired"
    CHALLENGE_CLOSED = "challenge_closed"
    INVALID_CHALLENGE = "invalid_challenge"
    INSUFFICIENT_CONSENSUS = "insufficient_consensus"
    FILE_NOT_FOUND = "file_not_found"
    BRANCH_NOT_FOUND = "branch_not_found"
    HASH_MISMATCH = "hash_mismatch"
    UPSTREAM_ERROR = "upstream_error"
    REVOKED = "revoked"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# CHALLENGE
# =============================================================================


@dataclass
class Challenge:
    """A time-bounded proof request tied to a subject and an expected value."""

    challenge_id: str
    subject: str
    channel: ProofChannel
    challenge_type: ChallengeType
    token: str
    proof_location: str  # DNS record name, or file path inside the repository
    expected_value: str
    issued_at: datetime
    expires_at: datetime
    status: ChallengeStatus = ChallengeStatus.PENDING
    verified_at: datetime | None = None

    # Claim metadata
    requested_by: str | None = None
    contact_email: str | None = None
    claim_reason: str | None = None
    challenger_ip: str | None = None

    # Ownership transfer bookkeeping
    current_owner_notified: bool = False
    notification_sent_at: datetime | None = None

    instructions: str = ""
    verification_record: str | None = None  # human-facing "v=mcp1 ..." string

    def is_expired(self, now: datetime) -> bool:
        """A challenge is dead from the instant it reaches ``expires_at``."""
        return now >= self.expires_at

    @property
    def is_open(self) -> bool:
        return self.status == ChallengeStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "challenge_id": self.challenge_id,
            "subject": self.subject,
            "channel": self.channel.value,
            "challenge_type": self.challenge_type.value,
            "token": self.token,
            "proof_location": self.proof_location,
            "expected_value": self.expected_value,
            "issued_at": _iso(self.issued_at),
            "expires_at": _iso(self.expires_at),
            "status": self.status.value,
            "verified_at": _iso(self.verified_at),
            "requested_by": self.requested_by,
            "contact_email": self.contact_email,
            "claim_reason": self.claim_reason,
            "challenger_ip": self.challenger_ip,
            "current_owner_notified": self.current_owner_notified,
            "notification_sent_at": _iso(self.notification_sent_at),
            "instructions": self.instructions,
            "verification_record": self.verification_record,
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Serialise without the fields only the claimant should hold."""
        data = self.to_dict()
        data.pop("challenger_ip")
        data.pop("contact_email")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Challenge:
        return cls(
            challenge_id=data["challenge_id"],
            subject=data["subject"],
            channel=ProofChannel(data["channel"]),
            challenge_type=ChallengeType(data["challenge_type"]),
            token=data["token"],
            proof_location=data["proof_location"],
            expected_value=data["expected_value"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            status=ChallengeStatus(data.get("status", "pending")),
            verified_at=_dt(data.get("verified_at")),
            requested_by=data.get("requested_by"),
            contact_email=data.get("contact_email"),
            claim_reason=data.get("claim_reason"),
            challenger_ip=data.get("challenger_ip"),
            current_owner_notified=data.get("current_owner_notified", False),
            notification_sent_at=_dt(data.get("notification_sent_at")),
            instructions=data.get("instructions", ""),
            verification_record=data.get("verification_record"),
        )


# =============================================================================
# VERIFICATION RECORD
# =============================================================================


@dataclass
class VerificationRecord:
    """Trust and health state attached to a verified subject.

    ``trust_status == VERIFIED`` always implies ``consecutive_failures == 0``.
    """

    subject: str
    channel: ProofChannel
    trust_status: TrustStatus
    verified_at: datetime
    expires_at: datetime
    trust_score: int
    proof_location: str
    expected_value: str
    consecutive_failures: int = 0
    marked_unverified_at: datetime | None = None
    last_verification_check: datetime | None = None
    owner_id: str | None = None
    branch: str | None = None
    retry_requested: bool = False
    failure_reason: str | None = None
    archival_candidate: bool = False

    @property
    def is_active(self) -> bool:
        return self.trust_status != TrustStatus.REVOKED

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "channel": self.channel.value,
            "trust_status": self.trust_status.value,
            "verified_at": _iso(self.verified_at),
            "expires_at": _iso(self.expires_at),
            "trust_score": self.trust_score,
            "proof_location": self.proof_location,
            "expected_value": self.expected_value,
            "consecutive_failures": self.consecutive_failures,
            "marked_unverified_at": _iso(self.marked_unverified_at),
            "last_verification_check": _iso(self.last_verification_check),
            "owner_id": self.owner_id,
            "branch": self.branch,
            "retry_requested": self.retry_requested,
            "failure_reason": self.failure_reason,
            "archival_candidate": self.archival_candidate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerificationRecord:
        return cls(
            subject=data["subject"],
            channel=ProofChannel(data["channel"]),
            trust_status=TrustStatus(data["trust_status"]),
            verified_at=datetime.fromisoformat(data["verified_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            trust_score=int(data["trust_score"]),
            proof_location=data["proof_location"],
            expected_value=data["expected_value"],
            consecutive_failures=int(data.get("consecutive_failures", 0)),
            marked_unverified_at=_dt(data.get("marked_unverified_at")),
            last_verification_check=_dt(data.get("last_verification_check")),
            owner_id=data.get("owner_id"),
            branch=data.get("branch"),
            retry_requested=data.get("retry_requested", False),
            failure_reason=data.get("failure_reason"),
            archival_candidate=data.get("archival_candidate", False),
        )


# =============================================================================
# OWNERSHIP GRANT
# =============================================================================


@dataclass
class OwnershipGrant:
    """Active ownership of a repository. One per repository."""

    repository: str
    owner_user_id: str
    token: str
    file_name: str
    branch: str
    verified_at: datetime
    method: str = "hash_file"

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repository,
            "owner_user_id": self.owner_user_id,
            "token": self.token,
            "file_name": self.file_name,
            "branch": self.branch,
            "verified_at": _iso(self.verified_at),
            "method": self.method,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OwnershipGrant:
        return cls(
            repository=data["repository"],
            owner_user_id=data["owner_user_id"],
            token=data["token"],
            file_name=data["file_name"],
            branch=data["branch"],
            verified_at=datetime.fromisoformat(data["verified_at"]),
            method=data.get("method", "hash_file"),
        )


# =============================================================================
# ARCHIVE
# =============================================================================


@dataclass
class ArchivedRegistration:
    """A registration moved to cold storage."""

    subject: str
    reason: ArchiveReason
    archived_at: datetime
    record: dict[str, Any] | None = None
    registration: dict[str, Any] | None = None
    archive_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def storage_key(self) -> str:
        return f"archived_{self.subject}_{int(self.archived_at.timestamp())}_{self.archive_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "reason": self.reason.value,
            "archived_at": _iso(self.archived_at),
            "record": self.record,
            "registration": self.registration,
            "archive_id": self.archive_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArchivedRegistration:
        return cls(
            subject=data["subject"],
            reason=ArchiveReason(data["reason"]),
            archived_at=datetime.fromisoformat(data["archived_at"]),
            record=data.get("record"),
            registration=data.get("registration"),
            archive_id=data.get("archive_id") or str(uuid.uuid4()),
        )


# =============================================================================
# OUTCOMES
# =============================================================================


@dataclass
class VerificationOutcome:
    """Structured result of any verification attempt.

    Expected failures never raise; they come back here with a reason.
    """

    verified: bool
    subject: str | None
    reason: str
    failure: FailureReason | None = None
    challenge_id: str | None = None
    challenge_status: ChallengeStatus | None = None
    record: VerificationRecord | None = None
    badges: list[str] = field(default_factory=list)
    ownership_transferred: bool = False
    agreeing: int | None = None
    panel_size: int | None = None
    upstream_status: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "verified": self.verified,
            "subject": self.subject,
            "reason": self.reason,
            "failure": self.failure.value if self.failure else None,
            "challenge_id": self.challenge_id,
            "challenge_status": self.challenge_status.value if self.challenge_status else None,
            "record": self.record.to_dict() if self.record else None,
            "badges": list(self.badges),
            "ownership_transferred": self.ownership_transferred,
            "agreeing": self.agreeing,
            "panel_size": self.panel_size,
            "upstream_status": self.upstream_status,
        }


@dataclass
class SweepResult:
    """Summary of one sweep run."""

    checked_at: datetime
    processed: int = 0
    errors: int = 0
    verified: int = 0
    unverified: int = 0
    skipped: int = 0
    archived: int = 0
    archival_candidates: int = 0
    expired_challenges: int = 0
    expiry_warnings: int = 0
    duration_ms: float = 0.0

    verified_subjects: list[str] = field(default_factory=list)
    unverified_subjects: list[str] = field(default_factory=list)
    skipped_subjects: list[str] = field(default_factory=list)
    archived_subjects: list[str] = field(default_factory=list)
    error_subjects: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked_at": _iso(self.checked_at),
            "processed": self.processed,
            "errors": self.errors,
            "verified": self.verified,
            "unverified": self.unverified,
            "skipped": self.skipped,
            "archived": self.archived,
            "archival_candidates": self.archival_candidates,
            "expired_challenges": self.expired_challenges,
            "expiry_warnings": self.expiry_warnings,
            "duration_ms": self.duration_ms,
            "details": {
                "verified_subjects": list(self.verified_subjects),
                "unverified_subjects": list(self.unverified_subjects),
                "skipped_subjects": list(self.skipped_subjects),
                "archived_subjects": list(self.archived_subjects),
                "error_subjects": list(self.error_subjects),
            },
        }


@dataclass
class VerificationStatusReport:
    """Point-in-time view of a subject's verification health."""

    subject: str
    trust_status: TrustStatus
    trust_score: int
    verified_at: datetime
    expires_at: datetime
    days_until_expiry: int
    consecutive_failures: int
    requires_reverification: bool
    pending_challenges: list[Challenge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "trust_status": self.trust_status.value,
            "trust_score": self.trust_score,
            "verified_at": _iso(self.verified_at),
            "expires_at": _iso(self.expires_at),
            "days_until_expiry": self.days_until_expiry,
            "consecutive_failures": self.consecutive_failures,
            "requires_reverification": self.requires_reverification,
            "pending_challenges": [c.to_public_dict() for c in self.pending_challenges],
        }
