"""claimcheck core - configuration, logging, errors and result envelopes."""

from .config import CoreSettings, clear_config_cache, get_config
from .exceptions import (
    ClaimCheckException,
    ConfigException,
    InvalidTransitionError,
    NotFoundError,
    StorageException,
    ValidationException,
)
from .logging import (
    AuditLogger,
    audit_logger,
    configure_logging,
    correlation_context,
)
from .response import StorageResult, err, ok

__all__ = [
    "AuditLogger",
    "ClaimCheckException",
    "ConfigException",
    "CoreSettings",
    "InvalidTransitionError",
    "NotFoundError",
    "StorageException",
    "StorageResult",
    "ValidationException",
    "audit_logger",
    "clear_config_cache",
    "configure_logging",
    "correlation_context",
    "err",
    "get_config",
    "ok",
]
