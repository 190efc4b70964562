"""Tests for the claimcheck CLI commands."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest

from claimcheck.cli.main import app, main
from claimcheck.cli.output import format_outcome
from claimcheck.cli.utils import run_with_service
from claimcheck.verification.transfer import LoggingNotifier, WebhookNotifier


@pytest.fixture
def cli_service(service):
    """Route every command to the shared in-memory service."""

    @asynccontextmanager
    async def _open():
        yield service
        await service.drain_notifications()

    with patch("claimcheck.cli.utils.open_service", _open), patch("claimcheck.cli.main.configure_logging"):
        yield service


def _json(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


class TestParser:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            app().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "claimcheck" in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit):
            app().parse_args([])

    def test_repo_verify_requires_token(self):
        with pytest.raises(SystemExit):
            app().parse_args(["repo", "verify", "octo/widgets", "--user", "alice"])


class TestDomainCommands:
    def test_challenge_json(self, cli_service, capsys):
        code = main(["challenge", "example.com", "--requested-by", "alice", "--email", "a@example.com", "--json"])

        data = _json(capsys)
        assert code == 0
        assert data["subject"] == "example.com"
        assert data["proof_location"] == "_mcplookup-verify.example.com"
        assert "contact_email" not in data

    def test_challenge_text(self, cli_service, capsys):
        code = main(["challenge", "example.com"])

        out = capsys.readouterr().out
        assert code == 0
        assert "_mcplookup-verify.example.com" in out

    def test_invalid_domain(self, cli_service, capsys):
        code = main(["challenge", "not a domain"])

        assert code == 1
        assert "Error: " in capsys.readouterr().err

    def test_verify_success(self, cli_service, fake_dns, capsys):
        main(["challenge", "example.com", "--json"])
        challenge = _json(capsys)
        fake_dns.publish(challenge["proof_location"], challenge["expected_value"])

        code = main(["verify", challenge["challenge_id"]])

        assert code == 0
        assert capsys.readouterr().out.startswith("VERIFIED: example.com")

    def test_verify_failure_exit_code(self, cli_service, capsys):
        main(["challenge", "example.com", "--json"])
        challenge = _json(capsys)

        code = main(["verify", challenge["challenge_id"], "--json"])

        data = _json(capsys)
        assert code == 2
        assert data["verified"] is False
        assert data["failure"] == "insufficient_consensus"


class TestRepoCommands:
    def test_claim_verify_owned(self, cli_service, fake_fetcher, capsys):
        main(["repo", "claim", "octo/widgets", "--user", "alice", "--json"])
        challenge = _json(capsys)
        fake_fetcher.commit("octo/widgets", challenge["token"])

        code = main(["repo", "verify", "octo/widgets", "--user", "alice", "--token", challenge["token"]])
        out = capsys.readouterr().out
        assert code == 0
        assert "Badges: github_verified, repo_owner, metadata_editor" in out

        main(["repo", "owned", "--user", "alice", "--json"])
        data = _json(capsys)
        assert [r["repository"] for r in data["repositories"]] == ["octo/widgets"]

    def test_owned_empty(self, cli_service, capsys):
        code = main(["repo", "owned", "--user", "nobody"])

        assert code == 0
        assert "No repositories owned by nobody" in capsys.readouterr().out


class TestStatusCommands:
    def test_unknown_target(self, cli_service, capsys):
        code = main(["status", "example.com"])

        assert code == 1
        assert "No record or challenge" in capsys.readouterr().err

    def test_challenge_status(self, cli_service, capsys):
        main(["challenge", "example.com", "--json"])
        challenge = _json(capsys)

        code = main(["status", challenge["challenge_id"], "--json"])

        assert code == 0
        assert _json(capsys)["status"] == "pending"

    def test_record_status(self, cli_service, fake_dns, capsys):
        main(["challenge", "example.com", "--json"])
        challenge = _json(capsys)
        fake_dns.publish(challenge["proof_location"], challenge["expected_value"])
        main(["verify", challenge["challenge_id"]])
        capsys.readouterr()

        code = main(["status", "example.com"])

        out = capsys.readouterr().out
        assert code == 0
        assert "example.com: verified (score 85)" in out

    def test_unverified_empty(self, cli_service, capsys):
        assert main(["unverified"]) == 0
        assert "No unverified subjects" in capsys.readouterr().out


class TestMaintenanceCommands:
    def test_sweep_json(self, cli_service, capsys):
        code = main(["sweep", "--json"])

        data = _json(capsys)
        assert code == 0
        assert data["processed"] == 0

    def test_retry_unknown_subject(self, cli_service, capsys):
        code = main(["retry", "example.com"])

        assert code == 1
        assert "VerificationRecord not found" in capsys.readouterr().err

    def test_revoke(self, cli_service, fake_dns, capsys):
        main(["challenge", "example.com", "--json"])
        challenge = _json(capsys)
        fake_dns.publish(challenge["proof_location"], challenge["expected_value"])
        main(["verify", challenge["challenge_id"]])
        capsys.readouterr()

        code = main(["revoke", "example.com", "--reason", "abuse"])

        assert code == 0
        assert "Revoked and archived example.com" in capsys.readouterr().out
        assert main(["revoke", "example.com"]) == 1


class TestOpenService:
    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("CLAIMCHECK_STORAGE", "memory")
        monkeypatch.delenv("CLAIMCHECK_NOTIFICATION_WEBHOOK_URL", raising=False)

        notifier, code = run_with_service(lambda service: _notifier(service))

        assert code == 0
        assert isinstance(notifier, LoggingNotifier)

    def test_webhook_notifier(self, monkeypatch):
        monkeypatch.setenv("CLAIMCHECK_STORAGE", "memory")
        monkeypatch.setenv("CLAIMCHECK_NOTIFICATION_WEBHOOK_URL", "https://hooks.example/notify")

        notifier, _ = run_with_service(lambda service: _notifier(service))

        assert isinstance(notifier, WebhookNotifier)
        assert notifier.url == "https://hooks.example/notify"


async def _notifier(service):
    return service.dispatcher.notifier


class TestFormatOutcome:
    def test_failure_line(self):
        line = format_outcome({"verified": False, "subject": "example.com", "reason": "no proof"})

        assert line == "FAILED: example.com - no proof"

    def test_record_summary(self):
        line = format_outcome(
            {
                "verified": True,
                "subject": "example.com",
                "reason": "Domain ownership verified",
                "record": {"trust_status": "verified", "trust_score": 85},
            }
        )

        assert line.endswith("(trust=verified, score=85)")
