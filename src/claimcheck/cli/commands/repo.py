"""Repository commands: repo claim, repo verify, repo owned."""

from __future__ import annotations

import argparse

from ..output import format_outcome, output_result
from ..utils import run_with_service


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register repository ownership commands on the CLI parser."""
    repo_parser = subparsers.add_parser("repo", help="Repository ownership via hash file")
    repo_sub = repo_parser.add_subparsers(dest="repo_command", required=True)

    claim_parser = repo_sub.add_parser("claim", help="Start a claim and get the token to commit")
    claim_parser.add_argument("repository", help="Repository as owner/repo")
    claim_parser.add_argument("--user", required=True, dest="user_id", help="User claiming ownership")
    claim_parser.add_argument("--email", dest="contact_email", help="Contact email")
    claim_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    claim_parser.set_defaults(func=cmd_repo_claim)

    verify_parser = repo_sub.add_parser("verify", help="Check the committed hash file")
    verify_parser.add_argument("repository", help="Repository as owner/repo")
    verify_parser.add_argument("--user", required=True, dest="user_id", help="User who made the claim")
    verify_parser.add_argument("--token", required=True, help="Token issued by 'repo claim'")
    verify_parser.add_argument("--branch", default="main", help="Branch holding the hash file (default: main)")
    verify_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    verify_parser.set_defaults(func=cmd_repo_verify)

    owned_parser = repo_sub.add_parser("owned", help="List repositories owned by a user")
    owned_parser.add_argument("--user", required=True, dest="user_id", help="User id")
    owned_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    owned_parser.set_defaults(func=cmd_repo_owned)


def cmd_repo_claim(args: argparse.Namespace) -> int:
    challenge, code = run_with_service(
        lambda service: service.claim_repository(args.repository, args.user_id, args.contact_email)
    )
    if challenge is None:
        return code

    text = f"Challenge {challenge.challenge_id}\n\n{challenge.instructions}"
    output_result(challenge.to_public_dict(), args.output_json, text)
    return 0


def cmd_repo_verify(args: argparse.Namespace) -> int:
    outcome, code = run_with_service(
        lambda service: service.verify_repository(args.repository, args.token, args.user_id, args.branch)
    )
    if outcome is None:
        return code

    data = outcome.to_dict()
    output_result(data, args.output_json, format_outcome(data))
    return 0 if outcome.verified else 2


def cmd_repo_owned(args: argparse.Namespace) -> int:
    grants, code = run_with_service(lambda service: service.get_user_owned_repositories(args.user_id))
    if grants is None:
        return code

    data = {"user_id": args.user_id, "repositories": [g.to_dict() for g in grants]}
    if grants:
        text = "\n".join(f"{g.repository}  (branch {g.branch}, since {g.verified_at:%Y-%m-%d})" for g in grants)
    else:
        text = f"No repositories owned by {args.user_id}"
    output_result(data, args.output_json, text)
    return 0
