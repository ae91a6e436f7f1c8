"""
CORS settings for the rules API.
"""

from dataclasses import dataclass, field


@dataclass
class CORSConfig:
    """Origins and headers the rule management UI may use."""

    origins: list[str] = field(default_factory=list)
    headers: list[str] = field(default_factory=lambda: ["*"])
    allow_credentials: bool = True
