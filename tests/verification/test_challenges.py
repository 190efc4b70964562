"""Tests for challenge issuance, request models and typed stores."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from claimcheck.core.exceptions import StorageException, ValidationException
from claimcheck.core.response import err
from claimcheck.verification.challenges import ChallengeIssuer
from claimcheck.verification.models import ChallengeStatus, ChallengeType, ProofChannel
from claimcheck.verification.requests import (
    ChallengeMetadata,
    ChallengeRequest,
    RepositoryVerificationRequest,
    parse_request,
)
from claimcheck.verification.stores import ChallengeRepository


@pytest.fixture
def repo(storage):
    return ChallengeRepository(storage)


@pytest.fixture
def issuer(settings, repo, clock):
    return ChallengeIssuer(settings, repo, clock)


class TestDomainChallenges:
    @pytest.mark.asyncio
    async def test_issue_domain(self, issuer, repo, clock):
        challenge = await issuer.issue_domain("Example.com")

        assert challenge.subject == "example.com"
        assert challenge.channel == ProofChannel.DNS
        assert challenge.challenge_type == ChallengeType.DOMAIN_VERIFICATION
        assert challenge.status == ChallengeStatus.PENDING
        assert challenge.proof_location == "_mcplookup-verify.example.com"
        assert challenge.expected_value == f"mcplookup-verify={challenge.token}.{int(clock.now.timestamp())}"
        assert challenge.expires_at - challenge.issued_at == timedelta(hours=24)
        assert challenge.verification_record.startswith("v=mcp1 domain=example.com token=")
        assert challenge.proof_location in challenge.instructions
        assert challenge.expected_value in challenge.instructions

        assert await repo.get(challenge.challenge_id) == challenge

    @pytest.mark.asyncio
    async def test_ids_and_tokens_unique(self, issuer):
        first = await issuer.issue_domain("example.com")
        second = await issuer.issue_domain("example.com")

        assert first.challenge_id != second.challenge_id
        assert first.token != second.token

    @pytest.mark.asyncio
    async def test_metadata_is_recorded(self, issuer):
        metadata = ChallengeMetadata(requested_by="bob", contact_email="bob@example.org", claim_reason="rebrand")

        challenge = await issuer.issue_domain("example.com", metadata)

        assert challenge.requested_by == "bob"
        assert challenge.contact_email == "bob@example.org"
        assert challenge.claim_reason == "rebrand"

    @pytest.mark.asyncio
    async def test_transfer_uses_challenge_record(self, issuer):
        challenge = await issuer.issue_domain("example.com", transfer=True)

        assert challenge.challenge_type == ChallengeType.OWNERSHIP_TRANSFER
        assert challenge.proof_location == "_mcp-challenge.example.com"
        assert challenge.expected_value.startswith("mcplookup-verify=")

    @pytest.mark.asyncio
    async def test_invalid_domain_not_persisted(self, issuer, repo):
        with pytest.raises(ValidationException):
            await issuer.issue_domain("not a domain")

        assert await repo.all() == []

    @pytest.mark.asyncio
    async def test_persistence_failure_propagates(self, settings, clock):
        storage = AsyncMock()
        storage.set = AsyncMock(return_value=err("disk full"))
        issuer = ChallengeIssuer(settings, ChallengeRepository(storage), clock)

        with pytest.raises(StorageException, match="disk full"):
            await issuer.issue_domain("example.com")


class TestRepositoryChallenges:
    @pytest.mark.asyncio
    async def test_issue_repository(self, issuer):
        challenge = await issuer.issue_repository("octo/widgets", "alice")

        assert challenge.channel == ProofChannel.REPOSITORY
        assert challenge.challenge_type == ChallengeType.REPOSITORY_OWNERSHIP
        assert challenge.proof_location == "mcplookup.org"
        assert challenge.expected_value == challenge.token
        assert challenge.requested_by == "alice"
        assert challenge.expires_at - challenge.issued_at == timedelta(days=7)
        assert "mcplookup.org" in challenge.instructions

    @pytest.mark.asyncio
    async def test_invalid_repository(self, issuer):
        with pytest.raises(ValidationException):
            await issuer.issue_repository("octo", "alice")


class TestChallengeRepository:
    @pytest.mark.asyncio
    async def test_for_subject_filters(self, issuer, repo):
        first = await issuer.issue_domain("example.com")
        await issuer.issue_domain("other.com")
        first.status = ChallengeStatus.FAILED
        await repo.save(first)
        pending = await issuer.issue_domain("example.com")

        everything = await repo.for_subject("example.com")
        open_only = await repo.for_subject("example.com", pending_only=True)

        assert len(everything) == 2
        assert [c.challenge_id for c in open_only] == [pending.challenge_id]

    @pytest.mark.asyncio
    async def test_delete(self, issuer, repo):
        challenge = await issuer.issue_domain("example.com")

        await repo.delete(challenge.challenge_id)

        assert await repo.get(challenge.challenge_id) is None


class TestRequests:
    def test_challenge_request_normalises(self):
        request = ChallengeRequest(subject="EXAMPLE.com.")

        assert request.subject == "example.com"

    def test_parse_request_raises_validation_exception(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_request(ChallengeRequest, {"subject": "bad domain"})

        assert exc_info.value.field == "subject"

    def test_bad_email(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_request(ChallengeMetadata, {"contact_email": "nope"})

        assert exc_info.value.field == "contact_email"

    def test_repository_verification_defaults_branch(self):
        request = parse_request(
            RepositoryVerificationRequest,
            {"repository": "octo/widgets", "user_id": "alice", "token": "tok"},
        )

        assert request.branch == "main"

    def test_missing_user(self):
        with pytest.raises(ValidationException):
            parse_request(RepositoryVerificationRequest, {"repository": "octo/widgets", "token": "tok"})
