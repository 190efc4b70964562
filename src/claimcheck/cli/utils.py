"""Shared helpers for CLI commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from ..core.config import get_config
from ..core.exceptions import ClaimCheckException
from ..registry import StorageRegistry
from ..storage import RedisStorage, create_storage
from ..verification.service import VerificationService
from ..verification.transfer import LoggingNotifier, OwnerNotifier, WebhookNotifier
from .output import output_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def open_service() -> AsyncIterator[VerificationService]:
    """Build a service over the configured storage backend.

    Outstanding owner notifications are awaited before the storage is closed.
    """
    config = get_config()
    storage = create_storage(config)

    notifier: OwnerNotifier
    if config.notification_webhook_url:
        notifier = WebhookNotifier(config.notification_webhook_url, config.webhook_timeout_seconds)
    else:
        notifier = LoggingNotifier()

    service = VerificationService(config, storage, StorageRegistry(storage), notifier=notifier)
    try:
        yield service
        await service.drain_notifications()
    finally:
        if isinstance(storage, RedisStorage):
            await storage.close()


def run_with_service(operation: Callable[[VerificationService], Awaitable[T]]) -> tuple[T | None, int]:
    """Run ``operation`` against a fresh service.

    Returns:
        (result, exit_code). Library errors are printed and give exit code 1.
    """

    async def _run() -> Any:
        async with open_service() as service:
            return await operation(service)

    try:
        return asyncio.run(_run()), 0
    except ClaimCheckException as e:
        output_error(e.message)
        return None, 1
