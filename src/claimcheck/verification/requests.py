"""Pydantic models validating requests at the service boundary."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.exceptions import ValidationException
from .tokens import normalize_domain, validate_repository

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ChallengeMetadata(BaseModel):
    """Optional human-supplied context attached to a challenge."""

    requested_by: str | None = Field(None, description="User id of the claimant")
    contact_email: str | None = Field(None, pattern=_EMAIL_PATTERN, description="Where to reach the claimant")
    claim_reason: str | None = Field(None, max_length=1000, description="Free-text justification")
    challenger_ip: str | None = Field(None, description="Address the request came from")


class ChallengeRequest(ChallengeMetadata):
    """Request model for issuing a domain challenge."""

    subject: str = Field(..., description="Domain being claimed")

    @field_validator("subject")
    @classmethod
    def _domain(cls, value: str) -> str:
        try:
            return normalize_domain(value)
        except ValidationException as e:
            raise ValueError(e.message) from e


class RepositoryClaimRequest(BaseModel):
    """Request model for starting a repository ownership claim."""

    repository: str = Field(..., description="Repository as owner/repo")
    user_id: str = Field(..., min_length=1, description="User claiming ownership")
    contact_email: str | None = Field(None, pattern=_EMAIL_PATTERN)

    @field_validator("repository")
    @classmethod
    def _repository(cls, value: str) -> str:
        try:
            return validate_repository(value)
        except ValidationException as e:
            raise ValueError(e.message) from e


class RepositoryVerificationRequest(RepositoryClaimRequest):
    """Request model for checking a committed hash file."""

    token: str = Field(..., min_length=1, description="Token issued with the claim")
    branch: str = Field("main", min_length=1, description="Branch holding the hash file")


def parse_request(model: type[BaseModel], data: dict[str, Any] | None) -> Any:
    """Validate ``data`` against ``model``.

    Raises:
        ValidationException: Naming the first offending field.
    """
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationException(first.get("msg", "Invalid request"), field=field, value=first.get("input")) from e
