"""
Structured logging utilities.

Configures structlog on top of the standard library and provides a context
manager for operation logging with timing and error tracking.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Any

import structlog

from src.core.config.logging_config import LoggingConfig

logger = structlog.get_logger(__name__)


def configure_logging(logging_config: LoggingConfig) -> None:
    """
    Route stdlib logging and structlog through the same handlers.

    Args:
        logging_config: Level, renderer ("console" or "json") and optional log file.
    """
    level = getattr(logging, logging_config.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if logging_config.file_path:
        handlers.append(logging.FileHandler(logging_config.file_path))

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)

    renderer: Any
    if logging_config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def log_operation(
    operation: str,
    subject_ids: dict[str, str] | None = None,
    **context: Any,
) -> Any:  # AsyncGenerator[None, None]
    """
    Context manager for structured operation logging.

    Logs operation start, completion, and errors with timing information.

    Args:
        operation: Name of the operation being performed
        subject_ids: Dictionary of subject identifiers (e.g., {"rule_id": "r-1"})
        **context: Additional context to include in logs

    Example:
        async with log_operation("evaluation_tick", rule_count=5):
            fired = await engine.run_tick(snapshot)
    """
    start_time = time.time()
    log_context = {
        "operation": operation,
        **(subject_ids or {}),
        **context,
    }

    logger.info(f"🚀 Starting {operation}", **log_context)

    try:
        yield
    except Exception as e:
        latency_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"❌ {operation} failed after {latency_ms}ms",
            error=str(e),
            latency_ms=latency_ms,
            exc_info=True,
            **log_context,
        )
        raise
    else:
        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(f"✅ {operation} completed in {latency_ms}ms", latency_ms=latency_ms, **log_context)
