# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for claimcheck.

Only unexpected faults and input errors travel as exceptions. Expected
verification failures (no proof, hash mismatch, insufficient consensus) are
reported through ``VerificationOutcome`` instead.
"""

from __future__ import annotations

from typing import Any


class ClaimCheckException(Exception):  # noqa: N818
    """Base exception for all claimcheck errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(ClaimCheckException):
    """Exception for input validation errors.

    Raised when:
    - A subject is not a valid domain or ``owner/repo`` string
    - A resolver address is not an acceptable public IP
    - Required fields are missing or out of range
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class StorageException(ClaimCheckException):
    """Exception for persistence errors.

    Raised when the storage collaborator reports a failure for a write or
    read the caller cannot proceed without.
    """

    def __init__(self, message: str, collection: str | None = None, key: str | None = None):
        details = {}
        if collection:
            details["collection"] = collection
        if key:
            details["key"] = key
        super().__init__(message, details)
        self.collection = collection
        self.key = key


class ConfigException(ClaimCheckException):
    """Exception for configuration errors."""

    pass


class NotFoundError(ClaimCheckException):
    """Exception for resource not found errors."""

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvalidTransitionError(ClaimCheckException):
    """Raised when a trust status change is not allowed from the current state."""

    def __init__(self, subject: str, current: str, attempted: str):
        super().__init__(
            f"Cannot move {subject} from {current} to {attempted}",
            {"subject": subject, "current": current, "attempted": attempted},
        )
        self.subject = subject
        self.current = current
        self.attempted = attempted
