"""Tests for DNS consensus verification."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import dns.exception
import dns.resolver
import pytest

from claimcheck.verification.consensus import (
    ConsensusResult,
    DnsConsensusVerifier,
    ResolverVote,
    dnspython_txt_lookup,
)
from claimcheck.verification.resolvers import ResolverPanel

RECORD = "_mcplookup-verify.example.com"
VALUE = "mcplookup-verify=abc123.1772452800"
PANEL = ["1.1.1.1", "8.8.8.8", "9.9.9.9", "208.67.222.222"]


@pytest.fixture
def verifier(fake_dns):
    return DnsConsensusVerifier(ResolverPanel.build(PANEL), lookup=fake_dns, timeout=0.05)


# =============================================================================
# MAJORITY BOUNDARY
# =============================================================================


class TestMajority:
    @pytest.mark.asyncio
    async def test_three_of_four_is_sufficient(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE, PANEL[:3])

        result = await verifier.check(RECORD, VALUE)

        assert result.reached
        assert result.agreeing == 3
        assert result.panel_size == 4

    @pytest.mark.asyncio
    async def test_exactly_half_is_insufficient(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE, PANEL[:2])

        result = await verifier.check(RECORD, VALUE)

        assert not result.reached
        assert result.agreeing == 2
        assert result.reason == "insufficient consensus (2/4)"

    @pytest.mark.asyncio
    async def test_all_agree(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE)

        result = await verifier.check(RECORD, VALUE)

        assert result.reached
        assert result.reason == "consensus reached (4/4)"

    @pytest.mark.asyncio
    async def test_no_records(self, verifier):
        result = await verifier.check(RECORD, VALUE)

        assert not result.reached
        assert result.agreeing == 0

    @pytest.mark.asyncio
    async def test_every_resolver_is_queried_once(self, verifier, fake_dns):
        await verifier.check(RECORD, VALUE)

        assert sorted(fake_dns.calls) == sorted((r, RECORD) for r in PANEL)

    @pytest.mark.asyncio
    async def test_five_resolver_panel_needs_three(self, fake_dns):
        panel = PANEL + ["149.112.112.112"]
        verifier = DnsConsensusVerifier(ResolverPanel.build(panel), lookup=fake_dns, timeout=0.05)
        fake_dns.publish(RECORD, VALUE, panel[:3])

        result = await verifier.check(RECORD, VALUE)

        assert result.reached
        assert result.quorum == 3


# =============================================================================
# NEGATIVE VOTES
# =============================================================================


class TestNegativeVotes:
    @pytest.mark.asyncio
    async def test_mismatched_value_votes_no(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE, PANEL[:2])
        fake_dns.publish(RECORD, VALUE + "x", PANEL[2:])

        result = await verifier.check(RECORD, VALUE)

        assert not result.reached
        assert result.agreeing == 2

    @pytest.mark.asyncio
    async def test_match_must_be_exact(self, verifier, fake_dns):
        fake_dns.publish(RECORD, f" {VALUE} ")

        result = await verifier.check(RECORD, VALUE)

        assert result.agreeing == 0

    @pytest.mark.asyncio
    async def test_any_matching_value_counts(self, verifier, fake_dns):
        for resolver in PANEL:
            fake_dns.records[(resolver, RECORD)] = ["v=spf1 -all", VALUE]

        result = await verifier.check(RECORD, VALUE)

        assert result.agreeing == 4

    @pytest.mark.asyncio
    async def test_timeout_is_a_no_vote(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE)
        fake_dns.hanging = {PANEL[0], PANEL[1]}

        result = await verifier.check(RECORD, VALUE)

        assert not result.reached
        assert result.agreeing == 2
        errors = {v.resolver: v.error for v in result.votes}
        assert errors[PANEL[0]] == "timeout"

    @pytest.mark.asyncio
    async def test_timeout_indistinguishable_from_mismatch(self, fake_dns):
        """Callers see the same tally whether a resolver hangs or disagrees."""
        timed_out = DnsConsensusVerifier(ResolverPanel.build(PANEL), lookup=fake_dns, timeout=0.05)
        fake_dns.publish(RECORD, VALUE, PANEL[:2])
        fake_dns.publish(RECORD, "wrong", PANEL[2:3])
        fake_dns.hanging = {PANEL[3]}
        hang_result = await timed_out.check(RECORD, VALUE)

        fake_dns.hanging = set()
        fake_dns.publish(RECORD, "wrong", PANEL[3:])
        mismatch_result = await timed_out.check(RECORD, VALUE)

        assert hang_result.reached == mismatch_result.reached
        assert hang_result.reason == mismatch_result.reason

    @pytest.mark.asyncio
    async def test_one_slow_resolver_does_not_block(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE)
        fake_dns.hanging = {PANEL[3]}

        result = await verifier.check(RECORD, VALUE)

        assert result.reached
        assert result.agreeing == 3
        assert result.duration_ms < 1000

    @pytest.mark.asyncio
    async def test_dns_errors_are_no_votes(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE)
        fake_dns.failing = {
            PANEL[0]: dns.resolver.NXDOMAIN(),
            PANEL[1]: dns.resolver.NoAnswer(),
        }

        result = await verifier.check(RECORD, VALUE)

        assert not result.reached
        assert result.agreeing == 2

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_no_votes(self, verifier, fake_dns):
        fake_dns.publish(RECORD, VALUE)
        fake_dns.failing = {PANEL[0]: OSError("network unreachable")}

        result = await verifier.check(RECORD, VALUE)

        assert result.reached
        assert result.agreeing == 3


# =============================================================================
# RESULT
# =============================================================================


class TestConsensusResult:
    def test_to_dict_hides_per_resolver_votes(self):
        result = ConsensusResult(
            record_name=RECORD,
            quorum=3,
            votes=[ResolverVote("1.1.1.1", True), ResolverVote("8.8.8.8", False, error="timeout")],
        )

        data = result.to_dict()

        assert "votes" not in data
        assert data["agreeing"] == 1
        assert data["reached"] is False

    def test_from_settings(self, settings, fake_dns):
        verifier = DnsConsensusVerifier.from_settings(settings, lookup=fake_dns)

        assert verifier.panel.size == 4
        assert verifier.panel.quorum == 3
        assert verifier.timeout == settings.dns_timeout_seconds


# =============================================================================
# DNSPYTHON LOOKUP
# =============================================================================


class TestDnspythonLookup:
    @pytest.mark.asyncio
    async def test_joins_multi_string_records(self):
        rdata = MagicMock()
        rdata.strings = (b"mcplookup-verify=", b"abc.123")
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=[rdata])

        with patch("dns.asyncresolver.Resolver", return_value=resolver) as resolver_cls:
            values = await dnspython_txt_lookup("1.1.1.1", RECORD, 2.0)

        resolver_cls.assert_called_once_with(configure=False)
        assert resolver.nameservers == ["1.1.1.1"]
        assert resolver.lifetime == 2.0
        resolver.resolve.assert_awaited_once_with(RECORD, "TXT")
        assert values == ["mcplookup-verify=abc.123"]

    @pytest.mark.asyncio
    async def test_errors_propagate_to_verifier(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=dns.exception.Timeout())

        with patch("dns.asyncresolver.Resolver", return_value=resolver):
            with pytest.raises(dns.exception.Timeout):
                await dnspython_txt_lookup("1.1.1.1", RECORD, 2.0)
