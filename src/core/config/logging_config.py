"""
Logging configuration.
"""

from dataclasses import dataclass


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"  # "console" or "json"
    file_path: str | None = None
