# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Daily re-verification sweep.

Re-checks every registered subject against its recorded proof, demotes the
ones that stopped resolving, and archives the ones that stayed unverified
past the grace period.

Runs are idempotent per UTC calendar day: a subject whose
``last_verification_check`` is already today is skipped, and the failure
increment is written together with that timestamp, so a crashed run can be
restarted from the top without penalising anyone twice.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from ..core.config import CoreSettings
from ..core.exceptions import StorageException
from ..core.logging import correlation_context
from ..registry import Registry
from .archival import Archiver, registry_fields
from .consensus import DnsConsensusVerifier
from .models import (
    ArchiveReason,
    ChallengeStatus,
    FailureReason,
    ProofChannel,
    SweepResult,
    TrustStatus,
    VerificationRecord,
)
from .repository import RepositoryHashVerifier
from .state import TrustStateMachine
from .stores import ArchiveRepository, ChallengeRepository, RecordRepository
from .transfer import TransferCoordinator, is_transfer_challenge

logger = logging.getLogger(__name__)

_NEVER = datetime.min.replace(tzinfo=UTC)


@dataclass
class RecheckOutcome:
    """Verdict of one re-check. ``transient`` failures carry no penalty."""

    passed: bool
    reason: str
    failure: FailureReason | None = None
    transient: bool = False


class VerificationSweep:
    """Scheduled batch job over the registry's subjects."""

    def __init__(
        self,
        settings: CoreSettings,
        registry: Registry,
        records: RecordRepository,
        challenges: ChallengeRepository,
        archive: ArchiveRepository,
        state: TrustStateMachine,
        archiver: Archiver,
        dns_verifier: DnsConsensusVerifier,
        repository_verifier: RepositoryHashVerifier,
        transfers: TransferCoordinator | None = None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings
        self.registry = registry
        self.records = records
        self.challenges = challenges
        self.archive = archive
        self.state = state
        self.archiver = archiver
        self.dns_verifier = dns_verifier
        self.repository_verifier = repository_verifier
        self.transfers = transfers
        self._sleep = sleep

    async def run(self, batch_size: int | None = None, concurrency: int | None = None) -> SweepResult:
        """Run one sweep.

        Args:
            batch_size: Most subjects to process; least recently checked go first
            concurrency: Subjects checked in parallel (defaults to configuration)

        Returns:
            SweepResult with per-category counts and subjects
        """
        batch_size = batch_size or self.settings.sweep_batch_size
        concurrency = max(1, concurrency or self.settings.sweep_concurrency)

        with correlation_context() as cid:
            loop = asyncio.get_running_loop()
            started = loop.time()
            result = SweepResult(checked_at=self.state.clock())
            logger.info(f"Starting verification sweep {cid} (batch={batch_size}, concurrency={concurrency})")

            await self._expire_challenges(result)

            records = {record.subject: record for record in await self.records.all()}
            subjects = await self.registry.list_subjects()
            subjects.sort(key=lambda s: (records[s].last_verification_check or _NEVER) if s in records else _NEVER)
            subjects = subjects[:batch_size]

            if concurrency == 1:
                for index, subject in enumerate(subjects):
                    if index:
                        await self._sleep(self.settings.sweep_delay_seconds)
                    await self._guarded(subject, records.get(subject), result)
            else:
                semaphore = asyncio.Semaphore(concurrency)

                async def worker(subject: str) -> None:
                    async with semaphore:
                        await self._guarded(subject, records.get(subject), result)
                        await self._sleep(self.settings.sweep_delay_seconds)

                await asyncio.gather(*(worker(subject) for subject in subjects))

            result.duration_ms = (loop.time() - started) * 1000

            try:
                await self.archive.save_sweep(result)
            except StorageException as e:
                logger.error(f"Could not store sweep result: {e}")

            logger.info(
                f"Sweep complete: processed={result.processed} verified={result.verified} "
                f"unverified={result.unverified} skipped={result.skipped} archived={result.archived} "
                f"candidates={result.archival_candidates} errors={result.errors} "
                f"({result.duration_ms:.0f}ms)"
            )
            return result

    # -------------------------------------------------------------------------
    # Per-subject processing
    # -------------------------------------------------------------------------

    async def _guarded(self, subject: str, record: VerificationRecord | None, result: SweepResult) -> None:
        result.processed += 1
        try:
            await self._process(subject, record, result)
        except Exception:
            logger.exception(f"Sweep failed for {subject}")
            result.errors += 1
            result.error_subjects.append(subject)

    def _skip(self, subject: str, result: SweepResult, why: str) -> None:
        logger.debug(f"Skipping {subject}: {why}")
        result.skipped += 1
        result.skipped_subjects.append(subject)

    async def _process(self, subject: str, record: VerificationRecord | None, result: SweepResult) -> None:
        if record is None:
            return self._skip(subject, result, "no verification record")
        if record.trust_status == TrustStatus.REVOKED:
            return self._skip(subject, result, "revoked")

        now = self.state.clock()

        if self.state.grace_expired(record, now):
            await self.archiver.archive_subject(record, ArchiveReason.GRACE_PERIOD_EXPIRED)
            result.archived += 1
            result.archived_subjects.append(subject)
            return

        if record.trust_status == TrustStatus.CHALLENGED:
            return self._skip(subject, result, "ownership transfer pending")
        if record.trust_status == TrustStatus.UNVERIFIED and not record.retry_requested:
            return self._skip(subject, result, "unverified without retry request")
        if self.state.checked_today(record, now):
            return self._skip(subject, result, "already checked today")

        if (
            record.trust_status == TrustStatus.VERIFIED
            and self.state.days_until_expiry(record, now) <= self.settings.expiry_warning_days
        ):
            logger.warning(f"Verification for {subject} expires {record.expires_at.isoformat()}")
            result.expiry_warnings += 1

        outcome = await self.recheck(record)
        if outcome.transient:
            logger.warning(f"Transient failure re-checking {subject}: {outcome.reason}")
            result.errors += 1
            result.error_subjects.append(subject)
            return

        if outcome.passed:
            updated = self.state.record_success(record)
            result.verified += 1
            result.verified_subjects.append(subject)
        else:
            updated = self.state.record_failure(record, outcome.reason)
            result.unverified += 1
            result.unverified_subjects.append(subject)
            if updated.archival_candidate and not record.archival_candidate:
                result.archival_candidates += 1

        await self.records.save(updated)
        await self.registry.update(subject, registry_fields(updated))

    async def recheck(self, record: VerificationRecord) -> RecheckOutcome:
        """Run the channel's verifier against the recorded proof."""
        if record.channel == ProofChannel.DNS:
            consensus = await self.dns_verifier.check(record.proof_location, record.expected_value)
            return RecheckOutcome(
                consensus.reached,
                consensus.reason,
                failure=None if consensus.reached else FailureReason.INSUFFICIENT_CONSENSUS,
            )

        check = await self.repository_verifier.check(record.subject, record.branch or "main", record.expected_value)
        transient = check.failure == FailureReason.UPSTREAM_ERROR and (
            check.rate_limited or check.upstream_status is None or check.upstream_status >= 500
        )
        return RecheckOutcome(check.matched, check.reason, failure=check.failure, transient=transient)

    # -------------------------------------------------------------------------
    # Challenge housekeeping
    # -------------------------------------------------------------------------

    async def _expire_challenges(self, result: SweepResult) -> None:
        now = self.state.clock()
        for challenge in await self.challenges.all():
            if challenge.status not in (ChallengeStatus.PENDING, ChallengeStatus.EXPIRED):
                continue
            if not challenge.is_expired(now):
                continue

            await self.challenges.delete(challenge.challenge_id)
            result.expired_challenges += 1
            logger.info(f"Discarded expired challenge {challenge.challenge_id} for {challenge.subject}")

            if is_transfer_challenge(challenge) and self.transfers is not None:
                record = await self.records.get(challenge.subject)
                if record is not None and record.trust_status == TrustStatus.CHALLENGED:
                    still_open = [
                        c
                        for c in await self.challenges.for_subject(challenge.subject, pending_only=True)
                        if is_transfer_challenge(c) and not c.is_expired(now)
                    ]
                    if not still_open:
                        reverted = self.transfers.abandon(record)
                        await self.records.save(reverted)
                        await self.registry.update(challenge.subject, registry_fields(reverted))
