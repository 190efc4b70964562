# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Repository hash-file verification.

The owner commits a file holding the issued token to the repository root.
The file is fetched through the GitHub contents API on the branch the owner
names and compared, after trimming, to the token.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

import aiohttp

from ..core.config import CoreSettings
from .models import FailureReason

logger = logging.getLogger(__name__)

USER_AGENT = "MCPLookup-Ownership-Verification"
GITHUB_ACCEPT = "application/vnd.github.v3+json"
MISSING_REF_MESSAGE = "No commit found for the ref"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"

VERIFIED_BADGES = ["github_verified", "repo_owner", "metadata_editor"]


@dataclass
class FetchResult:
    """Raw outcome of fetching one file from the hosting API."""

    status: int | None  # None when the request never completed
    content: str | None = None
    error: str | None = None
    branch_missing: bool = False
    rate_limited: bool = False

    @property
    def found(self) -> bool:
        return self.status == 200 and self.content is not None


def is_rate_limited(status: int, headers: Mapping[str, str]) -> bool:
    """GitHub signals an exhausted quota with 429, or 403 and zero remaining requests."""
    if status == 429:
        return True
    return status == 403 and headers.get(RATE_LIMIT_REMAINING_HEADER) == "0"


# (repository, path, branch) -> FetchResult
FileFetcher = Callable[[str, str, str], Awaitable[FetchResult]]


class GitHubContentsFetcher:
    """Fetches file content through ``GET /repos/{owner}/{repo}/contents/{path}``."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: str | None = None,
        timeout: float = 10.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> GitHubContentsFetcher:
        return cls(settings.github_api_url, settings.github_token, settings.github_timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": GITHUB_ACCEPT, "User-Agent": USER_AGENT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def __call__(self, repository: str, path: str, branch: str) -> FetchResult:
        url = f"{self.api_url}/repos/{repository}/contents/{path}"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    params={"ref": branch},
                    headers=self._headers(),
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status == 404:
                        message = ""
                        try:
                            body = await response.json(content_type=None)
                            if isinstance(body, dict):
                                message = str(body.get("message", ""))
                        except (aiohttp.ContentTypeError, ValueError):
                            pass
                        return FetchResult(status=404, branch_missing=MISSING_REF_MESSAGE in message)

                    if response.status != 200:
                        return FetchResult(
                            status=response.status,
                            error=f"HTTP {response.status}",
                            rate_limited=is_rate_limited(response.status, response.headers),
                        )

                    data = await response.json()

        except TimeoutError:
            return FetchResult(status=None, error="request timed out")
        except aiohttp.ClientError as e:
            return FetchResult(status=None, error=str(e))

        if not isinstance(data, dict) or data.get("type", "file") != "file":
            # A directory listing at the path is not the proof file
            return FetchResult(status=404)

        try:
            content = base64.b64decode(data.get("content") or "").decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as e:
            return FetchResult(status=200, error=f"undecodable content: {e}")

        return FetchResult(status=200, content=content)


# =============================================================================
# VERIFIER
# =============================================================================


@dataclass
class HashCheck:
    """Result of comparing a repository's hash file to a token."""

    matched: bool
    reason: str
    failure: FailureReason | None = None
    upstream_status: int | None = None
    rate_limited: bool = False


class RepositoryHashVerifier:
    """Compares the committed hash file against an expected token."""

    def __init__(self, file_name: str = "mcplookup.org", fetcher: FileFetcher | None = None):
        self.file_name = file_name
        self._fetch = fetcher or GitHubContentsFetcher()

    @classmethod
    def from_settings(cls, settings: CoreSettings, fetcher: FileFetcher | None = None) -> RepositoryHashVerifier:
        return cls(settings.repository_file_name, fetcher or GitHubContentsFetcher.from_settings(settings))

    async def check(self, repository: str, branch: str, expected_token: str) -> HashCheck:
        """Fetch and compare. Never raises for upstream failures."""
        result = await self._fetch(repository, self.file_name, branch)

        if result.status == 404:
            if result.branch_missing:
                return HashCheck(
                    matched=False,
                    reason=f"Branch '{branch}' not found in repository {repository}",
                    failure=FailureReason.BRANCH_NOT_FOUND,
                    upstream_status=404,
                )
            return HashCheck(
                matched=False,
                reason=f"File '{self.file_name}' not found in branch '{branch}' of repository {repository}",
                failure=FailureReason.FILE_NOT_FOUND,
                upstream_status=404,
            )

        if result.status is None:
            logger.warning(f"GitHub fetch for {repository}@{branch} failed: {result.error}")
            return HashCheck(
                matched=False,
                reason=f"Could not reach GitHub: {result.error}",
                failure=FailureReason.UPSTREAM_ERROR,
            )

        if result.rate_limited:
            logger.warning(f"GitHub rate limit hit while checking {repository}@{branch} (HTTP {result.status})")
            return HashCheck(
                matched=False,
                reason=f"GitHub API rate limit exceeded (HTTP {result.status})",
                failure=FailureReason.UPSTREAM_ERROR,
                upstream_status=result.status,
                rate_limited=True,
            )

        if not result.found:
            return HashCheck(
                matched=False,
                reason=f"GitHub API returned HTTP {result.status}" + (f": {result.error}" if result.error else ""),
                failure=FailureReason.UPSTREAM_ERROR,
                upstream_status=result.status,
            )

        found = (result.content or "").strip()
        if found != expected_token:
            return HashCheck(
                matched=False,
                reason=f"Hash mismatch. Expected: {expected_token}, Found: {found}",
                failure=FailureReason.HASH_MISMATCH,
                upstream_status=result.status,
            )

        logger.info(f"Hash file verified for {repository}@{branch}")
        return HashCheck(matched=True, reason="Repository ownership verified", upstream_status=result.status)
