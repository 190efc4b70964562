"""Maintenance commands: sweep, retry, revoke."""

from __future__ import annotations

import argparse

from ..output import format_outcome, output_result
from ..utils import run_with_service


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register maintenance commands on the CLI parser."""
    sweep_parser = subparsers.add_parser("sweep", help="Run the daily re-verification sweep")
    sweep_parser.add_argument("--batch-size", type=int, default=None, help="Most subjects to process in this run")
    sweep_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    sweep_parser.set_defaults(func=cmd_sweep)

    retry_parser = subparsers.add_parser("retry", help="Re-check an unverified subject")
    retry_parser.add_argument("subject", help="Domain or owner/repo")
    retry_parser.add_argument("--now", action="store_true", help="Re-check immediately instead of on the next sweep")
    retry_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    retry_parser.set_defaults(func=cmd_retry)

    revoke_parser = subparsers.add_parser("revoke", help="Revoke a subject and archive its registration")
    revoke_parser.add_argument("subject", help="Domain or owner/repo")
    revoke_parser.add_argument("--reason", default="administrative revocation", help="Reason for the audit log")
    revoke_parser.add_argument("--json", action="store_true", dest="output_json", help="Output as JSON")
    revoke_parser.set_defaults(func=cmd_revoke)


def cmd_sweep(args: argparse.Namespace) -> int:
    """Run one sweep. Exit code 1 if any subject errored."""
    result, code = run_with_service(lambda service: service.run_sweep(args.batch_size))
    if result is None:
        return code

    text = (
        f"Sweep complete in {result.duration_ms:.0f}ms\n"
        f"  processed:           {result.processed}\n"
        f"  verified:            {result.verified}\n"
        f"  unverified:          {result.unverified}\n"
        f"  skipped:             {result.skipped}\n"
        f"  archived:            {result.archived}\n"
        f"  archival candidates: {result.archival_candidates}\n"
        f"  expired challenges:  {result.expired_challenges}\n"
        f"  expiry warnings:     {result.expiry_warnings}\n"
        f"  errors:              {result.errors}"
    )
    output_result(result.to_dict(), args.output_json, text)
    return 1 if result.errors else 0


def cmd_retry(args: argparse.Namespace) -> int:
    if args.now:
        outcome, code = run_with_service(lambda service: service.retry_verification(args.subject))
        if outcome is None:
            return code
        data = outcome.to_dict()
        output_result(data, args.output_json, format_outcome(data))
        return 0 if outcome.verified else 2

    record, code = run_with_service(lambda service: service.request_retry(args.subject))
    if record is None:
        return code
    output_result(record.to_dict(), args.output_json, f"Retry scheduled for {record.subject} on the next sweep")
    return 0


def cmd_revoke(args: argparse.Namespace) -> int:
    archived, code = run_with_service(lambda service: service.revoke(args.subject, args.reason))
    if archived is None:
        return code
    output_result(archived.to_dict(), args.output_json, f"Revoked and archived {archived.subject}")
    return 0
