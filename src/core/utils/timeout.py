"""
Deadline helper for downstream calls such as trigger dispatch.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def execute_with_timeout(
    awaitable: Awaitable[T],
    timeout: float = 30.0,
    timeout_message: str | None = None,
    **context: Any,
) -> T:
    """
    Await ``awaitable``, giving up after ``timeout`` seconds.

    Args:
        awaitable: The call to wait for
        timeout: Deadline in seconds
        timeout_message: Message of the raised TimeoutError
        **context: Extra fields for the timeout log line (e.g. rule_id)

    Raises:
        TimeoutError: when the deadline passes; the awaitable is cancelled
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TimeoutError as err:
        msg = timeout_message or f"Operation timed out after {timeout} seconds"
        logger.error(f"⏱️ {msg}", timeout=timeout, **context)
        raise TimeoutError(msg) from err
