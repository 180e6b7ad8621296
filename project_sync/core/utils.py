"""
Utility functions for the application.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from project_sync.core.exceptions import TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    description: str = "remote call"
) -> T:
    """
    Run an async operation, retrying it when it raises TransientNetworkError.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        max_attempts: Total number of attempts, including the first one
        backoff_seconds: Base delay; attempt n waits n * backoff_seconds
        description: Used in log messages

    Returns:
        Whatever the operation returns

    Raises:
        TransientNetworkError: If the last attempt still failed transiently.
        Any other exception is propagated immediately.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except TransientNetworkError as e:
            if attempt >= max_attempts:
                logger.error(f"{description} failed after {max_attempts} attempts: {e}")
                raise
            delay = backoff_seconds * attempt
            logger.warning(f"{description} failed (attempt {attempt}/{max_attempts}), retrying in {delay}s: {e}")
            await asyncio.sleep(delay)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 platform timestamp ("2024-01-01T10:00:00.000Z") into an aware datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way the platform expects it in predicates"""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
