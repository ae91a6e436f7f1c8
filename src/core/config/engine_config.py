"""
Trigger engine configuration.
"""

from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Evaluation loop and dispatch configuration."""

    evaluation_interval_seconds: int = 300
    default_cooldown_minutes: int = 60
    num_workers: int = 3
    dispatch_timeout_seconds: float = 30.0
    # 1 means at-most-once: a failed dispatch is not retried
    dispatch_max_attempts: int = 1
    scheduler_enabled: bool = False
