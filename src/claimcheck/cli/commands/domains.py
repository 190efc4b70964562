"""Domain commands: challenge, verify."""

from __future__ import annotations

import argparse

from ..output import format_outcome, output_result
from ..utils import run_with_service


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register domain challenge commands on the CLI parser."""
    challenge_parser = subparsers.add_parser("challenge", help="Issue a DNS challenge for a domain")
    challenge_parser.add_argument("subject", help="Domain to claim (e.g. example.com)")
    challenge_parser.add_argument("--requested-by", help="User id of the claimant")
    challenge_parser.add_argument("--email", dest="contact_email", help="Contact email for the claim")
    challenge_parser.add_argument("--reason", dest="claim_reason", help="Why the domain is being claimed")
    challenge_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    challenge_parser.set_defaults(func=cmd_challenge)

    verify_parser = subparsers.add_parser("verify", help="Check a DNS challenge against the resolver panel")
    verify_parser.add_argument("challenge_id", help="Challenge id returned by 'challenge'")
    verify_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    verify_parser.set_defaults(func=cmd_verify)


def cmd_challenge(args: argparse.Namespace) -> int:
    """Issue a domain challenge and print the record to publish."""
    metadata = {
        "requested_by": args.requested_by,
        "contact_email": args.contact_email,
        "claim_reason": args.claim_reason,
    }
    challenge, code = run_with_service(lambda service: service.issue_challenge(args.subject, metadata))
    if challenge is None:
        return code

    text = f"Challenge {challenge.challenge_id} ({challenge.challenge_type})\n\n{challenge.instructions}"
    output_result(challenge.to_public_dict(), args.output_json, text)
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a challenge. Exit code 0 only when ownership is proven."""
    outcome, code = run_with_service(lambda service: service.verify_challenge(args.challenge_id))
    if outcome is None:
        return code

    data = outcome.to_dict()
    output_result(data, args.output_json, format_outcome(data))
    return 0 if outcome.verified else 2
