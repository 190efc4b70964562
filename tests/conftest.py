"""Global test fixtures for the claimcheck test suite.

No test touches the network: DNS lookups and GitHub fetches go through the
fakes below, and time comes from a frozen clock.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from claimcheck.core.config import DEFAULT_DNS_RESOLVERS, CoreSettings, clear_config_cache
from claimcheck.registry import StorageRegistry
from claimcheck.storage import MemoryStorage
from claimcheck.verification.repository import FetchResult
from claimcheck.verification.service import VerificationService

RESOLVERS = list(DEFAULT_DNS_RESOLVERS)
START = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


# ============================================================================
# Fakes
# ============================================================================


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeDns:
    """TXT lookup keyed by (resolver, record name)."""

    def __init__(self):
        self.records: dict[tuple[str, str], list[str]] = {}
        self.failing: dict[str, Exception] = {}
        self.hanging: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def publish(self, name: str, value: str, resolvers: list[str] | None = None) -> None:
        for resolver in RESOLVERS if resolvers is None else resolvers:
            self.records[(resolver, name)] = [value]

    def clear(self) -> None:
        self.records.clear()

    async def __call__(self, resolver: str, name: str, timeout: float) -> list[str]:
        self.calls.append((resolver, name))
        if resolver in self.hanging:
            await asyncio.sleep(3600)
        if resolver in self.failing:
            raise self.failing[resolver]
        return list(self.records.get((resolver, name), []))


class FakeFetcher:
    """Repository file fetcher keyed by (repository, branch)."""

    def __init__(self):
        self.files: dict[tuple[str, str], str] = {}
        self.missing_branches: set[tuple[str, str]] = set()
        self.statuses: dict[str, int | None] = {}
        self.rate_limited: set[str] = set()
        self.calls: list[tuple[str, str, str]] = []

    def commit(self, repository: str, content: str, branch: str = "main") -> None:
        self.files[(repository, branch)] = content

    async def __call__(self, repository: str, path: str, branch: str) -> FetchResult:
        self.calls.append((repository, path, branch))
        if repository in self.statuses:
            status = self.statuses[repository]
            return FetchResult(
                status=status,
                error="connection reset" if status is None else f"HTTP {status}",
                rate_limited=status == 429 or repository in self.rate_limited,
            )
        if (repository, branch) in self.missing_branches:
            return FetchResult(status=404, branch_missing=True)
        content = self.files.get((repository, branch))
        if content is None:
            return FetchResult(status=404)
        return FetchResult(status=200, content=content)


async def no_sleep(_seconds: float) -> None:
    return None


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_config():
    """Keep the CLI's global config from leaking between tests."""
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def settings() -> CoreSettings:
    return CoreSettings(
        _env_file=None,
        dns_resolvers=RESOLVERS,
        dns_timeout_seconds=0.05,
        sweep_delay_seconds=0,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def registry(storage) -> StorageRegistry:
    return StorageRegistry(storage)


@pytest.fixture
def fake_dns() -> FakeDns:
    return FakeDns()


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def service(settings, storage, registry, fake_dns, fake_fetcher, clock) -> VerificationService:
    return VerificationService(
        settings,
        storage,
        registry,
        dns_lookup=fake_dns,
        file_fetcher=fake_fetcher,
        clock=clock,
        sleep=no_sleep,
    )
