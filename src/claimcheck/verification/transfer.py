# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Ownership transfer challenges.

When someone other than the current owner claims a domain that already has
an active verification record, the claim becomes an ownership transfer
challenge: the record moves to ``challenged``, the current owner is told
about it, and the outcome of the DNS check decides who keeps the domain.

Owner notification runs as a tracked background task. Its failure is logged
and never changes the challenge result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

import aiohttp

from ..core.exceptions import ClaimCheckException
from .archival import Archiver
from .models import ArchiveReason, Challenge, ChallengeType, TrustStatus, VerificationRecord
from .state import TrustStateMachine

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "domain_challenge_initiated"


def notification_payload(
    challenge: Challenge,
    record: VerificationRecord,
    registration: dict[str, Any] | None,
) -> dict[str, Any]:
    """What the current owner is told. Never includes the token."""
    registration = registration or {}
    return {
        "event": NOTIFICATION_EVENT,
        "domain": challenge.subject,
        "challenge_id": challenge.challenge_id,
        "challenger": challenge.requested_by,
        "claim_reason": challenge.claim_reason,
        "expires_at": challenge.expires_at.isoformat(),
        "current_owner": record.owner_id,
        "owner_contact": registration.get("contact_email"),
        "record_name": challenge.proof_location,
    }


@runtime_checkable
class OwnerNotifier(Protocol):
    """Delivers transfer notices to the current owner."""

    async def notify(self, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier: writes the notice to the log."""

    async def notify(self, payload: dict[str, Any]) -> None:
        logger.warning(
            f"Ownership of {payload['domain']} challenged by {payload.get('challenger') or 'anonymous'} "
            f"(challenge {payload['challenge_id']}, expires {payload['expires_at']})"
        )


class WebhookNotifier:
    """POSTs the notice as JSON to a webhook."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def notify(self, payload: dict[str, Any]) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status >= 400:
                    raise ClaimCheckException(
                        f"Webhook returned HTTP {response.status}",
                        {"url": self.url, "status": response.status},
                    )


class NotificationDispatcher:
    """Runs notifications as background tasks and keeps references to them."""

    def __init__(self, notifier: OwnerNotifier | None = None):
        self.notifier = notifier or LoggingNotifier()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(
        self,
        payload: dict[str, Any],
        on_sent: Callable[[], Awaitable[None]] | None = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(self._run(payload, on_sent))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, payload: dict[str, Any], on_sent: Callable[[], Awaitable[None]] | None) -> None:
        try:
            await self.notifier.notify(payload)
            if on_sent is not None:
                await on_sent()
        except Exception as e:
            logger.warning(f"Owner notification for {payload.get('domain')} failed: {e}")
        else:
            logger.info(f"Owner notified of transfer challenge on {payload.get('domain')}")

    async def drain(self) -> None:
        """Wait for outstanding notifications."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# =============================================================================
# COORDINATOR
# =============================================================================


def is_transfer_claim(record: VerificationRecord | None, requested_by: str | None) -> bool:
    """A claim is a transfer when an active record belongs to someone else."""
    if record is None or not record.is_active:
        return False
    return requested_by != record.owner_id


class TransferCoordinator:
    """Applies the trust-side effects of a transfer challenge."""

    def __init__(
        self,
        state: TrustStateMachine,
        archiver: Archiver,
        dispatcher: NotificationDispatcher,
    ):
        self.state = state
        self.archiver = archiver
        self.dispatcher = dispatcher

    def open(
        self,
        challenge: Challenge,
        record: VerificationRecord,
        registration: dict[str, Any] | None,
        on_notified: Callable[[], Awaitable[None]] | None = None,
    ) -> VerificationRecord:
        """Mark the record challenged and notify the owner in the background.

        An unverified record stays unverified; only a verified one can be
        put into the challenged state.
        """
        updated = self.state.open_challenge(record) if record.trust_status == TrustStatus.VERIFIED else record
        self.dispatcher.dispatch(notification_payload(challenge, record, registration), on_notified)
        return updated

    async def complete(self, challenge: Challenge, record: VerificationRecord) -> VerificationRecord:
        """Archive the previous owner and start a fresh record for the challenger."""
        await self.archiver.archive_subject(record, ArchiveReason.OWNERSHIP_TRANSFERRED)
        fresh = self.state.create(
            subject=challenge.subject,
            channel=challenge.channel,
            proof_location=challenge.proof_location,
            expected_value=challenge.expected_value,
            owner_id=challenge.requested_by,
        )
        logger.info(f"Ownership of {challenge.subject} transferred to {challenge.requested_by or 'anonymous'}")
        return fresh

    def abandon(self, record: VerificationRecord) -> VerificationRecord:
        """Revert a challenged record once its transfer challenge is gone."""
        if record.trust_status == TrustStatus.CHALLENGED:
            return self.state.close_challenge(record)
        return record


def is_transfer_challenge(challenge: Challenge) -> bool:
    return challenge.challenge_type == ChallengeType.OWNERSHIP_TRANSFER
