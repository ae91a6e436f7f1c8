from abc import ABC, abstractmethod
from typing import Any

from src.triggers.models import TriggerEvent


class ModuleHandler(ABC):
    """
    Abstract base class for the downstream action behind a module id.

    Handlers run on dispatch workers, never inside rule evaluation.
    """

    @abstractmethod
    async def handle(self, event: TriggerEvent) -> dict[str, Any]:
        """
        Run the action for a fired rule.

        Args:
            event: The committed firing.

        Returns:
            A dictionary describing what the action did.
        """
        pass
