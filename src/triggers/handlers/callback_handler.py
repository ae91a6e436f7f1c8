from collections.abc import Awaitable, Callable
from typing import Any

from src.triggers.handlers.base import ModuleHandler
from src.triggers.models import TriggerEvent


class CallbackHandler(ModuleHandler):
    """Adapts a plain async callable to a module handler."""

    def __init__(self, callback: Callable[[TriggerEvent], Awaitable[dict[str, Any] | None]]):
        self.callback = callback

    async def handle(self, event: TriggerEvent) -> dict[str, Any]:
        result = await self.callback(event)
        return result or {}
