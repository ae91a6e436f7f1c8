from src.triggers.handlers.base import ModuleHandler
from src.triggers.handlers.callback_handler import CallbackHandler
from src.triggers.handlers.logging_handler import LoggingHandler

__all__ = [
    "CallbackHandler",
    "LoggingHandler",
    "ModuleHandler",
]
