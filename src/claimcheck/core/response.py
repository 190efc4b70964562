# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Result envelope returned by the storage collaborator.

Storage backends never raise across their interface; every call returns a
``StorageResult`` so callers decide whether a failure is fatal.

Usage::

    from claimcheck.core.response import ok, err

    return ok(data={"id": "abc"})
    return err("connection refused")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class StorageResult:
    """Unified result of a storage operation.

    Attributes:
        success: True when the operation completed without error.
        data:    Payload returned on success. None for void operations
                 and for reads of missing keys.
        error:   Human-readable error message on failure. None on success.
    """

    success: bool
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict, including only keys that carry information."""
        d: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            d["data"] = self.data
        if self.error:
            d["error"] = self.error
        return d


def ok(data: Any = None) -> StorageResult:
    """Create a successful StorageResult."""
    return StorageResult(success=True, data=data)


def err(error: str) -> StorageResult:
    """Create a failed StorageResult."""
    return StorageResult(success=False, error=error)
