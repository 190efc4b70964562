# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core configuration - centralized config for the claimcheck package.

All environment-based configuration should flow through this module.
Library classes receive a ``CoreSettings`` instance by injection; only the
CLI entry point reads the lazily-created global instance.

Usage:
    from claimcheck.core.config import get_config
    config = get_config()

    resolvers = config.dns_resolvers
    log_level = config.log_level
"""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_DNS_RESOLVERS = [
    "1.1.1.1",  # Cloudflare
    "8.8.8.8",  # Google
    "9.9.9.9",  # Quad9
    "208.67.222.222",  # OpenDNS
]


class CoreSettings(BaseSettings):
    """Core configuration settings for claimcheck.

    Every setting can be overridden with a ``CLAIMCHECK_`` environment
    variable or an entry in ``.env``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # CHALLENGE SETTINGS
    # ==========================================================================

    product_name: str = Field(
        default="mcplookup",
        description="Product tag used in DNS record names and values",
        validation_alias="CLAIMCHECK_PRODUCT_NAME",
    )
    domain_challenge_ttl_hours: int = Field(
        default=24,
        description="Lifetime of a DNS challenge",
        validation_alias="CLAIMCHECK_DOMAIN_CHALLENGE_TTL_HOURS",
    )
    repository_challenge_ttl_days: int = Field(
        default=7,
        description="Lifetime of a repository hash-file challenge",
        validation_alias="CLAIMCHECK_REPOSITORY_CHALLENGE_TTL_DAYS",
    )
    repository_file_name: str = Field(
        default="mcplookup.org",
        description="File that must hold the token at the repository root",
        validation_alias="CLAIMCHECK_REPOSITORY_FILE_NAME",
    )

    # ==========================================================================
    # DNS CONSENSUS SETTINGS
    # ==========================================================================

    dns_resolvers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_DNS_RESOLVERS),
        description="Public resolver panel queried for every TXT check",
        validation_alias="CLAIMCHECK_DNS_RESOLVERS",
    )
    dns_min_resolvers: int = Field(
        default=4,
        description="Smallest panel the consensus verifier accepts",
        validation_alias="CLAIMCHECK_DNS_MIN_RESOLVERS",
    )
    dns_quorum: int | None = Field(
        default=None,
        description="Agreeing resolvers required; None means a strict majority",
        validation_alias="CLAIMCHECK_DNS_QUORUM",
    )
    dns_timeout_seconds: float = Field(
        default=5.0,
        description="Per-resolver query timeout",
        validation_alias="CLAIMCHECK_DNS_TIMEOUT_SECONDS",
    )

    # ==========================================================================
    # TRUST STATE SETTINGS
    # ==========================================================================

    verification_validity_days: int = Field(
        default=90,
        description="How long a verification stays valid without re-checking",
        validation_alias="CLAIMCHECK_VERIFICATION_VALIDITY_DAYS",
    )
    grace_period_days: int = Field(
        default=30,
        description="Days a subject may stay unverified before it is archived",
        validation_alias="CLAIMCHECK_GRACE_PERIOD_DAYS",
    )
    archival_failure_threshold: int = Field(
        default=7,
        description="Consecutive sweep failures that flag an archival candidate",
        validation_alias="CLAIMCHECK_ARCHIVAL_FAILURE_THRESHOLD",
    )
    baseline_trust_score: int = Field(
        default=85,
        description="Trust score given to a freshly verified subject",
        validation_alias="CLAIMCHECK_BASELINE_TRUST_SCORE",
    )
    trust_score_step: int = Field(
        default=20,
        description="Trust score change per success or failure",
        validation_alias="CLAIMCHECK_TRUST_SCORE_STEP",
    )
    expiry_warning_days: int = Field(
        default=7,
        description="Warn when a verification expires within this many days",
        validation_alias="CLAIMCHECK_EXPIRY_WARNING_DAYS",
    )

    # ==========================================================================
    # SWEEP SETTINGS
    # ==========================================================================

    sweep_delay_seconds: float = Field(
        default=0.05,
        description="Pause between per-subject checks",
        validation_alias="CLAIMCHECK_SWEEP_DELAY_SECONDS",
    )
    sweep_concurrency: int = Field(
        default=1,
        description="Subjects checked in parallel during a sweep",
        validation_alias="CLAIMCHECK_SWEEP_CONCURRENCY",
    )
    sweep_batch_size: int = Field(
        default=500,
        description="Default number of subjects processed per sweep run",
        validation_alias="CLAIMCHECK_SWEEP_BATCH_SIZE",
    )

    # ==========================================================================
    # STORAGE SETTINGS
    # ==========================================================================

    storage_backend: str = Field(
        default="memory",
        description="Storage backend: 'memory' or 'redis'",
        validation_alias="CLAIMCHECK_STORAGE",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
        validation_alias="CLAIMCHECK_REDIS_URL",
    )
    redis_key_prefix: str = Field(
        default="claimcheck:",
        description="Key prefix for all Redis keys",
        validation_alias="CLAIMCHECK_REDIS_KEY_PREFIX",
    )

    # ==========================================================================
    # GITHUB SETTINGS
    # ==========================================================================

    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
        validation_alias="CLAIMCHECK_GITHUB_API_URL",
    )
    github_token: str | None = Field(
        default=None,
        description="Optional GitHub token to raise API rate limits",
        validation_alias="GITHUB_TOKEN",
    )
    github_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for GitHub contents requests",
        validation_alias="CLAIMCHECK_GITHUB_TIMEOUT_SECONDS",
    )

    # ==========================================================================
    # NOTIFICATION SETTINGS
    # ==========================================================================

    notification_webhook_url: str | None = Field(
        default=None,
        description="Webhook receiving ownership transfer notices; logged only when unset",
        validation_alias="CLAIMCHECK_NOTIFICATION_WEBHOOK_URL",
    )
    webhook_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for owner notification webhooks",
        validation_alias="CLAIMCHECK_WEBHOOK_TIMEOUT_SECONDS",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="CLAIMCHECK_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="CLAIMCHECK_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="CLAIMCHECK_LOG_FILE",
    )

    @field_validator("dns_resolvers", mode="before")
    @classmethod
    def _split_resolvers(cls, value):
        # Environment values arrive as "1.1.1.1,8.8.8.8"
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("storage_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("memory", "redis"):
            raise ValueError(f"Unknown storage backend '{value}'")
        return value

    @property
    def dns_record_prefix(self) -> str:
        """Subdomain label of the verification TXT record."""
        return f"_{self.product_name}-verify"

    @property
    def dns_value_prefix(self) -> str:
        """Prefix of the verification TXT value."""
        return f"{self.product_name}-verify="


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded, CLI only)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
