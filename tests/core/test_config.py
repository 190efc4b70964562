"""Tests for claimcheck.core.config - CoreSettings and global config management."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from claimcheck.core.config import DEFAULT_DNS_RESOLVERS, CoreSettings, clear_config_cache, get_config

_ENV_VARS = (
    "CLAIMCHECK_DNS_RESOLVERS",
    "CLAIMCHECK_STORAGE",
    "CLAIMCHECK_LOG_LEVEL",
    "CLAIMCHECK_PRODUCT_NAME",
    "CLAIMCHECK_GRACE_PERIOD_DAYS",
    "GITHUB_TOKEN",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================================
# Defaults
# ============================================================================


class TestCoreSettingsDefaults:
    def test_verification_defaults(self, clean_env):
        settings = CoreSettings(_env_file=None)

        assert settings.dns_resolvers == DEFAULT_DNS_RESOLVERS
        assert settings.dns_min_resolvers == 4
        assert settings.dns_quorum is None
        assert settings.domain_challenge_ttl_hours == 24
        assert settings.repository_challenge_ttl_days == 7
        assert settings.verification_validity_days == 90
        assert settings.grace_period_days == 30
        assert settings.archival_failure_threshold == 7
        assert settings.baseline_trust_score == 85

    def test_storage_and_logging_defaults(self, clean_env):
        settings = CoreSettings(_env_file=None)

        assert settings.storage_backend == "memory"
        assert settings.github_token is None
        assert settings.notification_webhook_url is None
        assert settings.log_level == "INFO"
        assert settings.log_file is None

    def test_record_prefixes(self, clean_env):
        settings = CoreSettings(_env_file=None)

        assert settings.dns_record_prefix == "_mcplookup-verify"
        assert settings.dns_value_prefix == "mcplookup-verify="


# ============================================================================
# Environment overrides
# ============================================================================


class TestEnvironmentOverrides:
    def test_resolver_list_from_env(self, clean_env):
        clean_env.setenv("CLAIMCHECK_DNS_RESOLVERS", "1.1.1.1, 8.8.4.4,9.9.9.9,,149.112.112.112")

        settings = CoreSettings(_env_file=None)

        assert settings.dns_resolvers == ["1.1.1.1", "8.8.4.4", "9.9.9.9", "149.112.112.112"]

    def test_scalar_overrides(self, clean_env):
        clean_env.setenv("CLAIMCHECK_GRACE_PERIOD_DAYS", "14")
        clean_env.setenv("CLAIMCHECK_PRODUCT_NAME", "acme")
        clean_env.setenv("GITHUB_TOKEN", "ghp_example")

        settings = CoreSettings(_env_file=None)

        assert settings.grace_period_days == 14
        assert settings.dns_record_prefix == "_acme-verify"
        assert settings.github_token == "ghp_example"

    def test_storage_backend_normalised(self, clean_env):
        clean_env.setenv("CLAIMCHECK_STORAGE", "REDIS")

        assert CoreSettings(_env_file=None).storage_backend == "redis"

    def test_unknown_storage_backend(self, clean_env):
        clean_env.setenv("CLAIMCHECK_STORAGE", "sqlite")

        with pytest.raises(ValidationError):
            CoreSettings(_env_file=None)


# ============================================================================
# Global instance
# ============================================================================


class TestGlobalConfig:
    def test_get_config_is_cached(self, clean_env):
        assert get_config() is get_config()

    def test_clear_config_cache(self, clean_env):
        first = get_config()
        clear_config_cache()

        assert get_config() is not first

    def test_cache_picks_up_new_env(self, clean_env):
        get_config()
        clean_env.setenv("CLAIMCHECK_LOG_LEVEL", "DEBUG")
        clear_config_cache()

        assert get_config().log_level == "DEBUG"
