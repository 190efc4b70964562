"""Challenge issuance.

Builds DNS and repository challenges with fresh tokens and persists them.
Issuance makes no network calls and fails only when persistence fails.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta

from ..core.config import CoreSettings
from .models import Challenge, ChallengeType, ProofChannel
from .requests import ChallengeMetadata
from .state import Clock, utc_now
from .stores import ChallengeRepository
from .tokens import (
    dns_instructions,
    dns_record_name,
    dns_record_value,
    generate_token,
    human_verification_string,
    normalize_domain,
    repository_instructions,
    transfer_record_name,
    validate_repository,
)

logger = logging.getLogger(__name__)


class ChallengeIssuer:
    """Creates and stores challenges for domains and repositories."""

    def __init__(
        self,
        settings: CoreSettings,
        challenges: ChallengeRepository,
        clock: Clock = utc_now,
    ):
        self.settings = settings
        self.challenges = challenges
        self.clock = clock

    async def issue_domain(
        self,
        subject: str,
        metadata: ChallengeMetadata | None = None,
        transfer: bool = False,
    ) -> Challenge:
        """Issue a DNS challenge.

        Args:
            subject: Domain being claimed
            metadata: Optional claimant details
            transfer: Issue an ownership transfer challenge against an owned domain

        Raises:
            ValidationException: If the domain is malformed
            StorageException: If the challenge cannot be persisted
        """
        domain = normalize_domain(subject)
        metadata = metadata or ChallengeMetadata()
        now = self.clock()
        expires_at = now + timedelta(hours=self.settings.domain_challenge_ttl_hours)
        token = generate_token()

        record_name = transfer_record_name(domain) if transfer else dns_record_name(domain, self.settings)
        record_value = dns_record_value(token, now, self.settings)

        challenge = Challenge(
            challenge_id=str(uuid.uuid4()),
            subject=domain,
            channel=ProofChannel.DNS,
            challenge_type=ChallengeType.OWNERSHIP_TRANSFER if transfer else ChallengeType.DOMAIN_VERIFICATION,
            token=token,
            proof_location=record_name,
            expected_value=record_value,
            issued_at=now,
            expires_at=expires_at,
            requested_by=metadata.requested_by,
            contact_email=metadata.contact_email,
            claim_reason=metadata.claim_reason,
            challenger_ip=metadata.challenger_ip,
            instructions=dns_instructions(record_name, record_value, expires_at),
            verification_record=human_verification_string(domain, token, now),
        )
        await self.challenges.save(challenge)

        logger.info(f"Issued {challenge.challenge_type} challenge {challenge.challenge_id} for {domain}")
        return challenge

    async def issue_repository(
        self,
        repository: str,
        user_id: str,
        contact_email: str | None = None,
    ) -> Challenge:
        """Issue a hash-file challenge for ``owner/repo``."""
        repository = validate_repository(repository)
        now = self.clock()
        expires_at = now + timedelta(days=self.settings.repository_challenge_ttl_days)
        token = generate_token()
        file_name = self.settings.repository_file_name

        challenge = Challenge(
            challenge_id=str(uuid.uuid4()),
            subject=repository,
            channel=ProofChannel.REPOSITORY,
            challenge_type=ChallengeType.REPOSITORY_OWNERSHIP,
            token=token,
            proof_location=file_name,
            expected_value=token,
            issued_at=now,
            expires_at=expires_at,
            requested_by=user_id,
            contact_email=contact_email,
            instructions=repository_instructions(repository, file_name, token, expires_at),
        )
        await self.challenges.save(challenge)

        logger.info(f"Issued repository challenge {challenge.challenge_id} for {repository}")
        return challenge
