# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Verification service facade.

Wires the challenge issuer, both channel verifiers, the trust state machine,
the transfer coordinator and the sweep together. Every collaborator is passed
in; nothing here reads global state.

Example:
    >>> service = VerificationService(settings, storage, registry)
    >>> challenge = await service.issue_challenge("example.com", {"requested_by": "alice"})
    >>> # owner publishes challenge.expected_value at challenge.proof_location
    >>> await service.verify(challenge.challenge_id)
    True
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any

from ..core.config import CoreSettings
from ..core.exceptions import InvalidTransitionError, NotFoundError
from ..core.logging import correlation_context
from ..registry import Registry
from ..storage import Storage
from .archival import Archiver, registry_fields
from .challenges import ChallengeIssuer
from .consensus import DnsConsensusVerifier, TxtLookup
from .models import (
    ArchivedRegistration,
    ArchiveReason,
    Challenge,
    ChallengeStatus,
    FailureReason,
    OwnershipGrant,
    ProofChannel,
    SweepResult,
    TrustStatus,
    VerificationOutcome,
    VerificationRecord,
    VerificationStatusReport,
)
from .repository import VERIFIED_BADGES, FileFetcher, RepositoryHashVerifier
from .requests import (
    ChallengeMetadata,
    RepositoryClaimRequest,
    RepositoryVerificationRequest,
    parse_request,
)
from .state import Clock, TrustStateMachine, utc_now
from .stores import ArchiveRepository, ChallengeRepository, GrantRepository, RecordRepository
from .sweep import VerificationSweep
from .tokens import normalize_domain
from .transfer import NotificationDispatcher, OwnerNotifier, TransferCoordinator, is_transfer_challenge, is_transfer_claim

logger = logging.getLogger(__name__)

# Re-verification is recommended once this few days of validity remain
REVERIFY_WINDOW_DAYS = 30

INVALID_REPOSITORY_CHALLENGE = "Invalid verification token or expired challenge"


class VerificationService:
    """Entry point for challenges, verification, status and sweeps."""

    def __init__(
        self,
        settings: CoreSettings,
        storage: Storage,
        registry: Registry,
        *,
        dns_lookup: TxtLookup | None = None,
        file_fetcher: FileFetcher | None = None,
        notifier: OwnerNotifier | None = None,
        clock: Clock = utc_now,
        sleep=asyncio.sleep,
    ):
        self.settings = settings
        self.registry = registry
        self.clock = clock

        self.challenges = ChallengeRepository(storage)
        self.records = RecordRepository(storage)
        self.grants = GrantRepository(storage)
        self.archive = ArchiveRepository(storage)

        self.state = TrustStateMachine(settings, clock)
        self.issuer = ChallengeIssuer(settings, self.challenges, clock)
        self.dns_verifier = DnsConsensusVerifier.from_settings(settings, lookup=dns_lookup)
        self.repository_verifier = RepositoryHashVerifier.from_settings(settings, fetcher=file_fetcher)
        self.archiver = Archiver(registry, self.records, self.archive, self.state)
        self.dispatcher = NotificationDispatcher(notifier)
        self.transfers = TransferCoordinator(self.state, self.archiver, self.dispatcher)
        self.sweep = VerificationSweep(
            settings,
            registry,
            self.records,
            self.challenges,
            self.archive,
            self.state,
            self.archiver,
            self.dns_verifier,
            self.repository_verifier,
            transfers=self.transfers,
            sleep=sleep,
        )

    # =========================================================================
    # DOMAIN CHALLENGES
    # =========================================================================

    async def issue_challenge(
        self,
        subject: str,
        metadata: ChallengeMetadata | dict[str, Any] | None = None,
    ) -> Challenge:
        """Issue a DNS challenge for a domain.

        If the domain already has an active record owned by someone else, the
        challenge is an ownership transfer challenge and the owner is notified.

        Raises:
            ValidationException: Malformed domain or metadata
            StorageException: Challenge could not be persisted
        """
        if not isinstance(metadata, ChallengeMetadata):
            metadata = parse_request(ChallengeMetadata, metadata)
        domain = normalize_domain(subject)

        record = await self.records.get(domain)
        if not is_transfer_claim(record, metadata.requested_by):
            return await self.issuer.issue_domain(domain, metadata)

        challenge = await self.issuer.issue_domain(domain, metadata, transfer=True)
        registration = await self.registry.get_by_domain(domain)

        async def mark_notified() -> None:
            # Runs after the notifier returns; the check may have settled the challenge meanwhile
            stored = await self.challenges.get(challenge.challenge_id)
            if stored is not None and stored.is_open:
                stored.current_owner_notified = True
                stored.notification_sent_at = self.clock()
                await self.challenges.save(stored)

        updated = self.transfers.open(challenge, record, registration, on_notified=mark_notified)
        if updated is not record:
            await self._store_record(updated)
        return challenge

    async def verify(self, challenge_id: str) -> bool:
        """Check a DNS challenge. True only when consensus is reached."""
        outcome = await self.verify_challenge(challenge_id)
        return outcome.verified

    async def verify_challenge(self, challenge_id: str) -> VerificationOutcome:
        """Check a DNS challenge and apply the resulting trust transition."""
        with correlation_context():
            challenge = await self.challenges.get(challenge_id)
            if challenge is None:
                return VerificationOutcome(
                    verified=False,
                    subject=None,
                    reason=f"Challenge not found: {challenge_id}",
                    failure=FailureReason.CHALLENGE_NOT_FOUND,
                    challenge_id=challenge_id,
                )
            if challenge.channel != ProofChannel.DNS:
                return self._outcome(
                    challenge,
                    False,
                    "Repository challenges are verified with the repository flow",
                    FailureReason.INVALID_CHALLENGE,
                )

            now = self.clock()
            if challenge.status == ChallengeStatus.EXPIRED or challenge.is_expired(now):
                await self._expire(challenge)
                return self._outcome(challenge, False, "Challenge has expired", FailureReason.CHALLENGE_EXPIRED)
            if challenge.status == ChallengeStatus.VERIFIED:
                record = await self.records.get(challenge.subject)
                return self._outcome(challenge, True, "Challenge already verified", record=record)
            if challenge.status == ChallengeStatus.FAILED:
                return self._outcome(
                    challenge,
                    False,
                    "Challenge was superseded by another verification",
                    FailureReason.CHALLENGE_CLOSED,
                )

            consensus = await self.dns_verifier.check(challenge.proof_location, challenge.expected_value)
            if not consensus.reached:
                outcome = self._outcome(
                    challenge,
                    False,
                    f"DNS verification failed: {consensus.reason}",
                    FailureReason.INSUFFICIENT_CONSENSUS,
                )
                outcome.agreeing = consensus.agreeing
                outcome.panel_size = consensus.panel_size
                return outcome

            transferred = False
            record = await self.records.get(challenge.subject)
            if is_transfer_challenge(challenge) and record is not None and record.is_active:
                record = await self.transfers.complete(challenge, record)
                transferred = True
            elif record is None or not record.is_active:
                record = self.state.create(
                    subject=challenge.subject,
                    channel=ProofChannel.DNS,
                    proof_location=challenge.proof_location,
                    expected_value=challenge.expected_value,
                    owner_id=challenge.requested_by,
                )
            else:
                record = self.state.record_success(
                    replace(
                        record,
                        channel=ProofChannel.DNS,
                        proof_location=challenge.proof_location,
                        expected_value=challenge.expected_value,
                        owner_id=record.owner_id or challenge.requested_by,
                        branch=None,
                    )
                )

            await self._store_record(record)
            await self._complete(challenge)
            logger.info(f"Domain ownership verified for {challenge.subject} ({consensus.reason})")

            outcome = self._outcome(challenge, True, "Domain ownership verified", record=record)
            outcome.ownership_transferred = transferred
            outcome.agreeing = consensus.agreeing
            outcome.panel_size = consensus.panel_size
            return outcome

    # =========================================================================
    # REPOSITORY CHALLENGES
    # =========================================================================

    async def claim_repository(
        self,
        repository: str,
        user_id: str,
        contact_email: str | None = None,
    ) -> Challenge:
        """Issue a hash-file challenge for ``owner/repo``."""
        request = parse_request(
            RepositoryClaimRequest,
            {"repository": repository, "user_id": user_id, "contact_email": contact_email},
        )
        return await self.issuer.issue_repository(request.repository, request.user_id, request.contact_email)

    async def verify_repository(
        self,
        repository: str,
        token: str,
        user_id: str,
        branch: str = "main",
    ) -> VerificationOutcome:
        """Check the committed hash file and grant ownership on a match.

        The pending challenge must match repository, token and user. A failed
        check never touches an existing grant.
        """
        request = parse_request(
            RepositoryVerificationRequest,
            {"repository": repository, "token": token, "user_id": user_id, "branch": branch},
        )

        with correlation_context():
            now = self.clock()
            candidates = [
                c
                for c in await self.challenges.for_subject(request.repository, pending_only=True)
                if c.channel == ProofChannel.REPOSITORY
                and c.token == request.token
                and c.requested_by == request.user_id
            ]
            live = [c for c in candidates if not c.is_expired(now)]
            for stale in candidates:
                if stale not in live:
                    await self._expire(stale)

            if not live:
                return VerificationOutcome(
                    verified=False,
                    subject=request.repository,
                    reason=INVALID_REPOSITORY_CHALLENGE,
                    failure=FailureReason.CHALLENGE_EXPIRED if candidates else FailureReason.INVALID_CHALLENGE,
                )
            challenge = live[-1]

            check = await self.repository_verifier.check(request.repository, request.branch, request.token)
            if not check.matched:
                outcome = self._outcome(challenge, False, check.reason, check.failure)
                outcome.upstream_status = check.upstream_status
                return outcome

            grant = OwnershipGrant(
                repository=request.repository,
                owner_user_id=request.user_id,
                token=request.token,
                file_name=self.repository_verifier.file_name,
                branch=request.branch,
                verified_at=now,
            )
            previous = await self.grants.get(request.repository)
            await self.grants.save(grant)
            if previous is not None and previous.owner_user_id != request.user_id:
                logger.warning(
                    f"Ownership of {request.repository} moved from {previous.owner_user_id} to {request.user_id}"
                )

            record = await self.records.get(request.repository)
            if record is None or not record.is_active:
                record = self.state.create(
                    subject=request.repository,
                    channel=ProofChannel.REPOSITORY,
                    proof_location=grant.file_name,
                    expected_value=request.token,
                    owner_id=request.user_id,
                    branch=request.branch,
                )
            else:
                record = self.state.record_success(
                    replace(
                        record,
                        channel=ProofChannel.REPOSITORY,
                        proof_location=grant.file_name,
                        expected_value=request.token,
                        owner_id=request.user_id,
                        branch=request.branch,
                    )
                )

            await self._store_record(record)
            await self._complete(challenge)

            outcome = self._outcome(challenge, True, "Repository ownership verified", record=record)
            outcome.badges = list(VERIFIED_BADGES)
            outcome.upstream_status = check.upstream_status
            return outcome

    async def check_repository_ownership(self, repository: str, user_id: str) -> bool:
        grant = await self.grants.get(repository)
        return grant is not None and grant.owner_user_id == user_id

    async def get_user_owned_repositories(self, user_id: str) -> list[OwnershipGrant]:
        return await self.grants.for_user(user_id)

    # =========================================================================
    # STATUS
    # =========================================================================

    async def get_status(self, subject_or_id: str) -> VerificationRecord | Challenge | None:
        """Look up a verification record by subject, else a challenge by id."""
        key = subject_or_id.strip()
        record = await self.records.get(key)
        if record is None and "/" not in key:
            record = await self.records.get(key.lower().rstrip("."))
        if record is not None:
            return record
        return await self.challenges.get(key)

    async def get_verification_status(self, subject: str) -> VerificationStatusReport | None:
        """Health summary for a subject, or None if it was never verified."""
        record = await self.get_status(subject)
        if not isinstance(record, VerificationRecord):
            return None

        now = self.clock()
        days_left = self.state.days_until_expiry(record, now)
        pending = [
            c for c in await self.challenges.for_subject(record.subject, pending_only=True) if not c.is_expired(now)
        ]
        return VerificationStatusReport(
            subject=record.subject,
            trust_status=record.trust_status,
            trust_score=record.trust_score,
            verified_at=record.verified_at,
            expires_at=record.expires_at,
            days_until_expiry=days_left,
            consecutive_failures=record.consecutive_failures,
            requires_reverification=(
                record.trust_status != TrustStatus.VERIFIED or days_left <= REVERIFY_WINDOW_DAYS
            ),
            pending_challenges=pending,
        )

    async def list_unverified(self) -> list[VerificationRecord]:
        return [r for r in await self.records.all() if r.trust_status == TrustStatus.UNVERIFIED]

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def run_sweep(self, batch_size: int | None = None) -> SweepResult:
        return await self.sweep.run(batch_size)

    async def request_retry(self, subject: str) -> VerificationRecord:
        """Schedule a re-check of an unverified subject on the next sweep."""
        record = await self._require_record(subject)
        updated = self.state.request_retry(record)
        await self.records.save(updated)
        logger.info(f"Retry requested for {record.subject}")
        return updated

    async def retry_verification(self, subject: str) -> VerificationOutcome:
        """Re-check a subject now, outside the sweep schedule."""
        record = await self._require_record(subject)

        if record.trust_status == TrustStatus.REVOKED:
            return VerificationOutcome(
                verified=False,
                subject=record.subject,
                reason="Verification was revoked; issue a new challenge",
                failure=FailureReason.REVOKED,
                record=record,
            )
        if record.trust_status == TrustStatus.CHALLENGED:
            return VerificationOutcome(
                verified=False,
                subject=record.subject,
                reason="An ownership transfer challenge is pending",
                record=record,
            )

        with correlation_context():
            outcome = await self.sweep.recheck(record)
            if outcome.transient:
                return VerificationOutcome(
                    verified=False,
                    subject=record.subject,
                    reason=outcome.reason,
                    failure=FailureReason.UPSTREAM_ERROR,
                    record=record,
                )

            if outcome.passed:
                updated = self.state.record_success(record)
            else:
                updated = self.state.record_failure(record, outcome.reason)
            await self._store_record(updated)

        return VerificationOutcome(
            verified=outcome.passed,
            subject=record.subject,
            reason=outcome.reason,
            failure=outcome.failure,
            record=updated,
        )

    async def revoke(self, subject: str, reason: str = "administrative revocation") -> ArchivedRegistration:
        """Revoke a subject and archive its registration.

        Raises:
            NotFoundError: No record for the subject
            InvalidTransitionError: Already revoked
        """
        record = await self._require_record(subject)
        if record.trust_status == TrustStatus.REVOKED:
            raise InvalidTransitionError(record.subject, record.trust_status.value, TrustStatus.REVOKED.value)

        logger.warning(f"Revoking {record.subject}: {reason}")
        return await self.archiver.archive_subject(record, ArchiveReason.ADMINISTRATIVE_REVOCATION)

    async def drain_notifications(self) -> None:
        """Wait for outstanding owner notifications."""
        await self.dispatcher.drain()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _require_record(self, subject: str) -> VerificationRecord:
        record = await self.get_status(subject)
        if not isinstance(record, VerificationRecord):
            raise NotFoundError("VerificationRecord", subject)
        return record

    async def _store_record(self, record: VerificationRecord) -> None:
        await self.records.save(record)
        if not await self.registry.update(record.subject, registry_fields(record)):
            logger.debug(f"{record.subject} is not registered yet; trust state stored only")

    async def _complete(self, challenge: Challenge) -> None:
        """Mark a challenge verified and retire the subject's other open challenges."""
        challenge.status = ChallengeStatus.VERIFIED
        challenge.verified_at = self.clock()
        await self.challenges.save(challenge)

        for other in await self.challenges.for_subject(challenge.subject, pending_only=True):
            if other.challenge_id != challenge.challenge_id:
                other.status = ChallengeStatus.FAILED
                await self.challenges.save(other)
                logger.info(f"Challenge {other.challenge_id} superseded by {challenge.challenge_id}")

    async def _expire(self, challenge: Challenge) -> None:
        """Close a challenge that outlived its TTL. Verified challenges keep their status."""
        if challenge.is_open:
            challenge.status = ChallengeStatus.EXPIRED
            await self.challenges.save(challenge)
            logger.info(f"Challenge {challenge.challenge_id} for {challenge.subject} expired")

        if challenge.status == ChallengeStatus.EXPIRED and is_transfer_challenge(challenge):
            record = await self.records.get(challenge.subject)
            if record is not None and record.trust_status == TrustStatus.CHALLENGED:
                now = self.clock()
                open_transfers = [
                    c
                    for c in await self.challenges.for_subject(challenge.subject, pending_only=True)
                    if is_transfer_challenge(c) and not c.is_expired(now)
                ]
                if not open_transfers:
                    await self._store_record(self.transfers.abandon(record))

    @staticmethod
    def _outcome(
        challenge: Challenge,
        verified: bool,
        reason: str,
        failure: FailureReason | None = None,
        record: VerificationRecord | None = None,
    ) -> VerificationOutcome:
        return VerificationOutcome(
            verified=verified,
            subject=challenge.subject,
            reason=reason,
            failure=failure,
            challenge_id=challenge.challenge_id,
            challenge_status=challenge.status,
            record=record,
        )
