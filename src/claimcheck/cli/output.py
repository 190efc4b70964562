# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Output formatting for CLI commands.

Handles JSON vs plain text output.
"""

from __future__ import annotations

import json
import sys
from typing import Any


def output_result(data: dict[str, Any], output_json: bool, text: str | None = None) -> None:
    """Print a result.

    With ``output_json`` the full payload is pretty-printed. Otherwise
    ``text`` is printed, falling back to JSON when no text rendering exists.
    """
    if output_json or text is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        print(text)


def output_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)


def format_outcome(outcome: dict[str, Any]) -> str:
    """One-line summary of a VerificationOutcome dict."""
    mark = "VERIFIED" if outcome["verified"] else "FAILED"
    line = f"{mark}: {outcome.get('subject') or outcome.get('challenge_id')} - {outcome['reason']}"
    record = outcome.get("record")
    if record:
        line += f" (trust={record['trust_status']}, score={record['trust_score']})"
    if outcome.get("badges"):
        line += f"\nBadges: {', '.join(outcome['badges'])}"
    return line
