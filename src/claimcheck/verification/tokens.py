"""Challenge tokens, subject validation and proof strings.

Nothing here touches the network or storage.
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime

from ..core.config import CoreSettings
from ..core.exceptions import ValidationException

TOKEN_ALPHABET = string.ascii_letters + string.digits
DEFAULT_TOKEN_LENGTH = 32  # ~190 bits with a 62-symbol alphabet
MIN_TOKEN_LENGTH = 22  # 128 bits

TRANSFER_RECORD_PREFIX = "_mcp-challenge"
HUMAN_RECORD_VERSION = "v=mcp1"

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_REPOSITORY_RE = re.compile(r"^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$")


def generate_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Generate an unguessable alphanumeric token."""
    if length < MIN_TOKEN_LENGTH:
        raise ValidationException(
            f"Token length must be at least {MIN_TOKEN_LENGTH} characters",
            field="length",
            value=length,
        )
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def normalize_domain(subject: str) -> str:
    """Lower-case and validate a domain name.

    Raises:
        ValidationException: If the value is not a plausible public domain.
    """
    if not isinstance(subject, str) or not subject.strip():
        raise ValidationException("Domain is required", field="subject", value=subject)

    domain = subject.strip().lower().rstrip(".")
    if len(domain) > 253:
        raise ValidationException("Domain name too long", field="subject", value=subject)

    labels = domain.split(".")
    if len(labels) < 2:
        raise ValidationException("Domain must have at least two labels", field="subject", value=subject)
    for label in labels:
        if not _LABEL_RE.match(label):
            raise ValidationException(f"Invalid domain label '{label}'", field="subject", value=subject)
    if labels[-1].isdigit():
        raise ValidationException("IP addresses are not domains", field="subject", value=subject)

    return domain


def validate_repository(subject: str) -> str:
    """Validate an ``owner/repo`` identifier.

    Raises:
        ValidationException: If the value does not look like ``owner/repo``.
    """
    if not isinstance(subject, str) or not _REPOSITORY_RE.match(subject.strip()):
        raise ValidationException(
            "Invalid repository format. Expected: owner/repo",
            field="repository",
            value=subject,
        )
    return subject.strip()


# =============================================================================
# PROOF STRINGS
# =============================================================================


def dns_record_name(domain: str, settings: CoreSettings) -> str:
    return f"{settings.dns_record_prefix}.{domain}"


def transfer_record_name(domain: str) -> str:
    return f"{TRANSFER_RECORD_PREFIX}.{domain}"


def dns_record_value(token: str, issued_at: datetime, settings: CoreSettings) -> str:
    """The exact TXT value an owner must publish."""
    return f"{settings.dns_value_prefix}{token}.{int(issued_at.timestamp())}"


def human_verification_string(domain: str, token: str, issued_at: datetime) -> str:
    """Readable proof summary returned to clients. Never queried in DNS."""
    return f"{HUMAN_RECORD_VERSION} domain={domain} token={token} timestamp={int(issued_at.timestamp())}"


def dns_instructions(record_name: str, record_value: str, expires_at: datetime) -> str:
    return (
        f"Add a TXT record to your DNS:\n"
        f"  Name:  {record_name}\n"
        f"  Value: {record_value}\n"
        f"\n"
        f"Then request verification before {expires_at.isoformat()}."
    )


def repository_instructions(repository: str, file_name: str, token: str, expires_at: datetime) -> str:
    return (
        f"Create a file named '{file_name}' in the root of {repository}\n"
        f"containing exactly:\n"
        f"  {token}\n"
        f"\n"
        f"Commit it to any branch, then verify with that branch name "
        f"before {expires_at.isoformat()}."
    )
