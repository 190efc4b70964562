"""Tests for registry mirroring and archival."""

from __future__ import annotations

import logging

import pytest

from claimcheck.verification.archival import Archiver, registry_fields
from claimcheck.verification.models import ArchiveReason, ProofChannel, TrustStatus
from claimcheck.verification.state import TrustStateMachine
from claimcheck.verification.stores import ArchiveRepository, RecordRepository


@pytest.fixture
def machine(settings, clock):
    return TrustStateMachine(settings, clock)


@pytest.fixture
def record(machine):
    return machine.create(
        subject="example.com",
        channel=ProofChannel.DNS,
        proof_location="_mcplookup-verify.example.com",
        expected_value="mcplookup-verify=abc.1",
    )


@pytest.fixture
def archiver(registry, storage, machine):
    return Archiver(registry, RecordRepository(storage), ArchiveRepository(storage), machine)


class TestRegistryFields:
    def test_verified_record(self, record, clock):
        fields = registry_fields(record)

        assert fields["verified"] is True
        assert fields["trust_status"] == "verified"
        assert fields["trust_score"] == 85
        assert fields["verified_at"] == clock.now.isoformat()
        assert fields["consecutive_failures"] == 0

    def test_unverified_record(self, machine, record):
        fields = registry_fields(machine.record_failure(record, "gone"))

        assert fields["verified"] is False
        assert fields["trust_status"] == "unverified"
        assert fields["consecutive_failures"] == 1

    def test_challenged_record_stays_listed(self, machine, record):
        fields = registry_fields(machine.open_challenge(record))

        assert fields["verified"] is True
        assert fields["trust_status"] == "challenged"

    def test_revoked_record(self, machine, record):
        assert registry_fields(machine.revoke(record, "abuse"))["verified"] is False


class TestArchiver:
    @pytest.mark.asyncio
    async def test_archive_registered_subject(self, archiver, registry, record, caplog):
        await registry.register("example.com", {"name": "Example", "endpoint": "https://example.com/mcp"})

        with caplog.at_level(logging.WARNING, logger="claimcheck.audit"):
            entry = await archiver.archive_subject(record, ArchiveReason.GRACE_PERIOD_EXPIRED)

        assert entry.registration["name"] == "Example"
        assert entry.record["trust_status"] == "revoked"
        assert await registry.get_by_domain("example.com") is None
        assert "example.com" not in await registry.list_subjects()
        assert "archived: example.com (grace_period_expired)" in caplog.text

    @pytest.mark.asyncio
    async def test_revoked_record_is_kept(self, archiver, record):
        await archiver.archive_subject(record, ArchiveReason.ADMINISTRATIVE_REVOCATION)

        stored = await archiver.records.get("example.com")
        assert stored.trust_status == TrustStatus.REVOKED
        assert stored.failure_reason == "administrative_revocation"

    @pytest.mark.asyncio
    async def test_unregistered_subject_still_archived(self, archiver, record):
        entry = await archiver.archive_subject(record, ArchiveReason.GRACE_PERIOD_EXPIRED)

        assert entry.registration is None
        assert [e.subject for e in await archiver.archive.for_subject("example.com")] == ["example.com"]
