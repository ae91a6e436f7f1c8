"""
Main configuration class that composes all configs.
"""

import json
import os

from dotenv import load_dotenv

from src.core.config.cors_config import CORSConfig
from src.core.config.engine_config import EngineConfig
from src.core.config.logging_config import LoggingConfig
from src.core.config.rules_config import RulesConfig

# Load environment variables from a .env file
load_dotenv()

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Main configuration class."""

    def __init__(self) -> None:
        self.engine = EngineConfig(
            evaluation_interval_seconds=int(os.getenv("EVALUATION_INTERVAL_SECONDS", "300")),
            default_cooldown_minutes=int(os.getenv("DEFAULT_COOLDOWN_MINUTES", "60")),
            num_workers=int(os.getenv("DISPATCH_WORKERS", "3")),
            dispatch_timeout_seconds=float(os.getenv("DISPATCH_TIMEOUT_SECONDS", "30")),
            dispatch_max_attempts=int(os.getenv("DISPATCH_MAX_ATTEMPTS", "1")),
            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", "false"),
        )

        self.rules = RulesConfig(
            base_path=os.getenv("RULES_BASE_PATH", ".hermes"),
            rules_file=os.getenv("RULES_FILE", "rules.yaml"),
            load_on_startup=_env_bool("RULES_LOAD_ON_STARTUP", "true"),
        )

        # CORS lists are JSON arrays in the environment
        cors_headers = os.getenv("CORS_HEADERS", '["*"]')
        cors_origins = os.getenv("CORS_ORIGINS", json.dumps(DEFAULT_CORS_ORIGINS))
        allow_credentials = _env_bool("CORS_ALLOW_CREDENTIALS", "true")

        try:
            self.cors = CORSConfig(
                origins=json.loads(cors_origins),
                headers=json.loads(cors_headers),
                allow_credentials=allow_credentials,
            )
        except json.JSONDecodeError:
            self.cors = CORSConfig(origins=list(DEFAULT_CORS_ORIGINS), allow_credentials=allow_credentials)

        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            format=os.getenv("LOG_FORMAT", "console"),
            file_path=os.getenv("LOG_FILE_PATH"),
        )

        # Development settings
        self.debug = _env_bool("DEBUG", "false")
        self.environment = os.getenv("ENVIRONMENT", "development")

    def validate(self) -> bool:
        """Validate configuration."""
        errors = []

        if self.engine.evaluation_interval_seconds <= 0:
            errors.append("EVALUATION_INTERVAL_SECONDS must be positive")

        if self.engine.default_cooldown_minutes < 0:
            errors.append("DEFAULT_COOLDOWN_MINUTES must not be negative")

        if self.engine.num_workers < 1:
            errors.append("DISPATCH_WORKERS must be at least 1")

        if self.engine.dispatch_timeout_seconds <= 0:
            errors.append("DISPATCH_TIMEOUT_SECONDS must be positive")

        if self.engine.dispatch_max_attempts < 1:
            errors.append("DISPATCH_MAX_ATTEMPTS must be at least 1")

        if self.logging.format not in ("console", "json"):
            errors.append("LOG_FORMAT must be 'console' or 'json'")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True


# Global config instance
config = Config()
