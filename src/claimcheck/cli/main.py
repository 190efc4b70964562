#!/usr/bin/env python3
"""
claimcheck CLI - ownership verification for domains and repositories.

Commands:
  claimcheck challenge <domain>             Issue a DNS challenge
  claimcheck verify <challenge_id>          Check a DNS challenge
  claimcheck status <subject|challenge_id>  Show trust record or challenge
  claimcheck unverified                     List subjects in their grace period
  claimcheck sweep [--batch-size N]         Run the re-verification sweep
  claimcheck retry <subject> [--now]        Re-check an unverified subject
  claimcheck revoke <subject>               Revoke and archive a subject
  claimcheck repo claim|verify|owned        Repository hash-file ownership

State persists across invocations only with CLAIMCHECK_STORAGE=redis.
"""

from __future__ import annotations

import argparse
import sys

from .. import __version__
from ..core.logging import configure_logging
from .commands import COMMAND_MODULES


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="claimcheck",
        description="Ownership verification for domains and repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  claimcheck challenge example.com --requested-by alice
  claimcheck verify 6f1c...                  After publishing the TXT record
  claimcheck status example.com --json
  claimcheck repo claim acme/widgets --user alice
  claimcheck repo verify acme/widgets --user alice --token <token> --branch main
  claimcheck sweep --batch-size 100
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: CLAIMCHECK_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
