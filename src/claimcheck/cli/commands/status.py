"""Status commands: status, unverified."""

from __future__ import annotations

import argparse

from ...verification.models import Challenge, VerificationRecord
from ...verification.service import VerificationService
from ..output import output_error, output_result
from ..utils import run_with_service


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register status commands on the CLI parser."""
    status_parser = subparsers.add_parser("status", help="Show a subject's trust record or a challenge")
    status_parser.add_argument("target", help="Domain, owner/repo, or challenge id")
    status_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    status_parser.set_defaults(func=cmd_status)

    unverified_parser = subparsers.add_parser("unverified", help="List subjects inside their grace period")
    unverified_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    unverified_parser.set_defaults(func=cmd_unverified)


async def _lookup(service: VerificationService, target: str) -> dict:
    found = await service.get_status(target)
    report = None
    if isinstance(found, VerificationRecord):
        report = await service.get_verification_status(found.subject)
    return {"found": found, "report": report}


def cmd_status(args: argparse.Namespace) -> int:
    result, code = run_with_service(lambda service: _lookup(service, args.target))
    if result is None:
        return code

    found = result["found"]
    if found is None:
        output_error(f"No record or challenge for {args.target}")
        return 1

    if isinstance(found, Challenge):
        text = (
            f"Challenge {found.challenge_id} for {found.subject}\n"
            f"  type:    {found.challenge_type}\n"
            f"  status:  {found.status}\n"
            f"  expires: {found.expires_at.isoformat()}"
        )
        output_result(found.to_public_dict(), args.output_json, text)
        return 0

    report = result["report"]
    data = report.to_dict()
    text = (
        f"{report.subject}: {report.trust_status} (score {report.trust_score})\n"
        f"  verified:   {report.verified_at.isoformat()}\n"
        f"  expires:    {report.expires_at.isoformat()} ({report.days_until_expiry} days)\n"
        f"  failures:   {report.consecutive_failures}\n"
        f"  reverify:   {'yes' if report.requires_reverification else 'no'}\n"
        f"  pending:    {len(report.pending_challenges)} challenge(s)"
    )
    output_result(data, args.output_json, text)
    return 0


def cmd_unverified(args: argparse.Namespace) -> int:
    records, code = run_with_service(lambda service: service.list_unverified())
    if records is None:
        return code

    data = {"unverified": [r.to_dict() for r in records]}
    if records:
        text = "\n".join(
            f"{r.subject}  failures={r.consecutive_failures} since={r.marked_unverified_at:%Y-%m-%d}"
            + ("  [archival candidate]" if r.archival_candidate else "")
            for r in records
        )
    else:
        text = "No unverified subjects"
    output_result(data, args.output_json, text)
    return 0
