# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Trust state machine for verification records.

Every trust-status and trust-score change goes through this module, no
matter which verifier or job triggered it. Transitions are pure: they take
a record and return an updated copy.

States:
    verified    -> unverified   first failed re-check
    verified    -> challenged   ownership transfer opened
    challenged  -> verified     transfer failed or expired
    challenged  -> unverified   failed re-check while challenged
    unverified  -> verified     successful re-check
    *           -> revoked      administrative action or archival (terminal)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from ..core.config import CoreSettings
from ..core.exceptions import InvalidTransitionError
from ..core.logging import audit_logger
from .models import ProofChannel, TrustStatus, VerificationRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class TrustStateMachine:
    """Applies success, failure, challenge and revocation transitions."""

    def __init__(self, settings: CoreSettings, clock: Clock = utc_now):
        self.settings = settings
        self.clock = clock

    @property
    def validity(self) -> timedelta:
        return timedelta(days=self.settings.verification_validity_days)

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=self.settings.grace_period_days)

    def create(
        self,
        subject: str,
        channel: ProofChannel,
        proof_location: str,
        expected_value: str,
        owner_id: str | None = None,
        branch: str | None = None,
    ) -> VerificationRecord:
        """Fresh verified record at the baseline trust score."""
        now = self.clock()
        record = VerificationRecord(
            subject=subject,
            channel=channel,
            trust_status=TrustStatus.VERIFIED,
            verified_at=now,
            expires_at=now + self.validity,
            trust_score=self.settings.baseline_trust_score,
            proof_location=proof_location,
            expected_value=expected_value,
            last_verification_check=now,
            owner_id=owner_id,
            branch=branch,
        )
        audit_logger.log_event("trust_created", subject, channel=channel.value, trust_score=record.trust_score)
        return record

    def record_success(self, record: VerificationRecord) -> VerificationRecord:
        """Any non-revoked status becomes verified with a bounded score bump."""
        if record.trust_status == TrustStatus.REVOKED:
            raise InvalidTransitionError(record.subject, record.trust_status.value, TrustStatus.VERIFIED.value)

        now = self.clock()
        updated = replace(
            record,
            trust_status=TrustStatus.VERIFIED,
            consecutive_failures=0,
            trust_score=min(100, record.trust_score + self.settings.trust_score_step),
            verified_at=now,
            expires_at=now + self.validity,
            last_verification_check=now,
            marked_unverified_at=None,
            failure_reason=None,
            archival_candidate=False,
            retry_requested=False,
        )
        if record.trust_status != TrustStatus.VERIFIED:
            audit_logger.log_event(
                "trust_restored",
                record.subject,
                previous=record.trust_status.value,
                trust_score=updated.trust_score,
            )
        return updated

    def record_failure(self, record: VerificationRecord, reason: str) -> VerificationRecord:
        """Demote to unverified and decay the score.

        A retry stays scheduled until the failure count reaches the archival
        threshold, at which point the record is flagged as a candidate.
        """
        if record.trust_status == TrustStatus.REVOKED:
            raise InvalidTransitionError(record.subject, record.trust_status.value, TrustStatus.UNVERIFIED.value)

        now = self.clock()
        failures = record.consecutive_failures + 1
        threshold_reached = failures >= self.settings.archival_failure_threshold

        updated = replace(
            record,
            trust_status=TrustStatus.UNVERIFIED,
            consecutive_failures=failures,
            trust_score=max(0, record.trust_score - self.settings.trust_score_step),
            marked_unverified_at=record.marked_unverified_at or now,
            last_verification_check=now,
            failure_reason=reason,
            retry_requested=not threshold_reached,
            archival_candidate=record.archival_candidate or threshold_reached,
        )

        if record.trust_status != TrustStatus.UNVERIFIED:
            audit_logger.log_event(
                "trust_demoted",
                record.subject,
                level=logging.WARNING,
                previous=record.trust_status.value,
                reason=reason,
            )
        if threshold_reached and not record.archival_candidate:
            audit_logger.log_event(
                "archival_candidate",
                record.subject,
                level=logging.WARNING,
                consecutive_failures=failures,
                reason=reason,
            )
        return updated

    def open_challenge(self, record: VerificationRecord) -> VerificationRecord:
        if record.trust_status != TrustStatus.VERIFIED:
            raise InvalidTransitionError(record.subject, record.trust_status.value, TrustStatus.CHALLENGED.value)
        audit_logger.log_event("ownership_challenged", record.subject, owner_id=record.owner_id)
        return replace(record, trust_status=TrustStatus.CHALLENGED)

    def close_challenge(self, record: VerificationRecord) -> VerificationRecord:
        """Return a challenged record to verified after a failed transfer."""
        if record.trust_status != TrustStatus.CHALLENGED:
            raise InvalidTransitionError(record.subject, record.trust_status.value, TrustStatus.VERIFIED.value)
        audit_logger.log_event("ownership_challenge_closed", record.subject)
        return replace(record, trust_status=TrustStatus.VERIFIED)

    def revoke(self, record: VerificationRecord, reason: str) -> VerificationRecord:
        """Terminal. A new challenge must create a fresh record."""
        audit_logger.log_event(
            "trust_revoked",
            record.subject,
            level=logging.WARNING,
            previous=record.trust_status.value,
            reason=reason,
        )
        return replace(record, trust_status=TrustStatus.REVOKED, failure_reason=reason, retry_requested=False)

    def request_retry(self, record: VerificationRecord) -> VerificationRecord:
        """Ask the next sweep to re-check an unverified record."""
        if record.trust_status == TrustStatus.REVOKED:
            raise InvalidTransitionError(record.subject, record.trust_status.value, "retry_requested")
        return replace(record, retry_requested=True)

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    def grace_expired(self, record: VerificationRecord, now: datetime | None = None) -> bool:
        if record.trust_status != TrustStatus.UNVERIFIED or record.marked_unverified_at is None:
            return False
        return (now or self.clock()) - record.marked_unverified_at > self.grace_period

    def checked_today(self, record: VerificationRecord, now: datetime | None = None) -> bool:
        """True if the record was already checked on the current UTC day."""
        if record.last_verification_check is None:
            return False
        today = (now or self.clock()).astimezone(UTC).date()
        return record.last_verification_check.astimezone(UTC).date() == today

    def days_until_expiry(self, record: VerificationRecord, now: datetime | None = None) -> int:
        return (record.expires_at - (now or self.clock())).days
