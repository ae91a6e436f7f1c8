"""
Configuration package.

Section dataclasses plus the process-wide ``config`` built from the environment.
"""

from src.core.config.cors_config import CORSConfig
from src.core.config.engine_config import EngineConfig
from src.core.config.logging_config import LoggingConfig
from src.core.config.rules_config import RulesConfig
from src.core.config.settings import Config, config

__all__ = [
    "CORSConfig",
    "Config",
    "EngineConfig",
    "LoggingConfig",
    "RulesConfig",
    "config",
]
