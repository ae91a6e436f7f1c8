# API endpoints package

from src.api.engine import router as engine_router
from src.api.rules import router as rules_router

__all__ = [
    "engine_router",
    "rules_router",
]
