# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""DNS consensus verification.

The same TXT lookup is sent to every resolver on the panel at once. A
resolver votes yes only when one of its TXT values is identical to the
expected proof string. Errors, timeouts and mismatches are all no votes;
there is no abstain. Verification succeeds when the yes votes reach the
panel's quorum, which is always a strict majority.

Example:
    >>> verifier = DnsConsensusVerifier.from_settings(settings)
    >>> result = await verifier.check("_mcplookup-verify.example.com", "mcplookup-verify=abc.1700000000")
    >>> result.reached
    True
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import dns.asyncresolver
import dns.exception

from ..core.config import CoreSettings
from .resolvers import ResolverPanel

logger = logging.getLogger(__name__)

# (resolver address, record name, timeout seconds) -> TXT values
TxtLookup = Callable[[str, str, float], Awaitable[list[str]]]


async def dnspython_txt_lookup(resolver_address: str, record_name: str, timeout: float) -> list[str]:
    """Query one resolver for TXT values using dnspython.

    Multi-string TXT records are joined into a single value.
    """
    resolver = dns.asyncresolver.Resolver(configure=False)
    resolver.nameservers = [resolver_address]
    resolver.timeout = timeout
    resolver.lifetime = timeout

    answers = await resolver.resolve(record_name, "TXT")
    return [b"".join(rdata.strings).decode("utf-8", errors="replace") for rdata in answers]


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class ResolverVote:
    """One resolver's answer. Kept internal; callers only see the tally."""

    resolver: str
    agreed: bool
    error: str | None = None
    values: list[str] = field(default_factory=list)


@dataclass
class ConsensusResult:
    """Outcome of a panel-wide TXT check."""

    record_name: str
    quorum: int
    votes: list[ResolverVote]
    duration_ms: float = 0.0

    @property
    def agreeing(self) -> int:
        return sum(1 for vote in self.votes if vote.agreed)

    @property
    def panel_size(self) -> int:
        return len(self.votes)

    @property
    def reached(self) -> bool:
        return self.agreeing >= self.quorum

    @property
    def reason(self) -> str:
        if self.reached:
            return f"consensus reached ({self.agreeing}/{self.panel_size})"
        return f"insufficient consensus ({self.agreeing}/{self.panel_size})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_name": self.record_name,
            "reached": self.reached,
            "agreeing": self.agreeing,
            "panel_size": self.panel_size,
            "quorum": self.quorum,
            "duration_ms": self.duration_ms,
        }


# =============================================================================
# VERIFIER
# =============================================================================


class DnsConsensusVerifier:
    """Checks a TXT proof against a panel of independent resolvers."""

    def __init__(
        self,
        panel: ResolverPanel,
        lookup: TxtLookup | None = None,
        timeout: float = 5.0,
    ):
        """Initialize the verifier.

        Args:
            panel: Validated resolver panel with its quorum
            lookup: TXT lookup coroutine; defaults to dnspython
            timeout: Per-resolver bound in seconds
        """
        self.panel = panel
        self.timeout = timeout
        self._lookup = lookup or dnspython_txt_lookup

    @classmethod
    def from_settings(cls, settings: CoreSettings, lookup: TxtLookup | None = None) -> DnsConsensusVerifier:
        return cls(ResolverPanel.from_settings(settings), lookup=lookup, timeout=settings.dns_timeout_seconds)

    async def _vote(self, resolver: str, record_name: str, expected_value: str) -> ResolverVote:
        try:
            values = await asyncio.wait_for(
                self._lookup(resolver, record_name, self.timeout),
                timeout=self.timeout,
            )
        except TimeoutError:
            logger.debug(f"{resolver}: timeout resolving {record_name}")
            return ResolverVote(resolver, agreed=False, error="timeout")
        except dns.exception.DNSException as e:
            logger.debug(f"{resolver}: {type(e).__name__} resolving {record_name}")
            return ResolverVote(resolver, agreed=False, error=type(e).__name__)
        except Exception as e:
            logger.warning(f"{resolver}: lookup failed for {record_name}: {e}")
            return ResolverVote(resolver, agreed=False, error=str(e))

        return ResolverVote(resolver, agreed=expected_value in values, values=list(values))

    async def check(self, record_name: str, expected_value: str) -> ConsensusResult:
        """Query every resolver concurrently and tally the votes."""
        loop = asyncio.get_running_loop()
        start = loop.time()

        votes = await asyncio.gather(
            *(self._vote(resolver, record_name, expected_value) for resolver in self.panel.addresses)
        )

        result = ConsensusResult(
            record_name=record_name,
            quorum=self.panel.quorum,
            votes=list(votes),
            duration_ms=(loop.time() - start) * 1000,
        )
        dissent = [f"{v.resolver}={v.error or 'mismatch'}" for v in result.votes if not v.agreed]
        logger.info(f"DNS check {record_name}: {result.reason}" + (f" [{', '.join(dissent)}]" if dissent else ""))
        return result
