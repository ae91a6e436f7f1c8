from abc import ABC, abstractmethod
from typing import Any

import structlog

from src.core.errors import DispatchError
from src.triggers.handlers.base import ModuleHandler
from src.triggers.handlers.logging_handler import LoggingHandler
from src.triggers.models import TriggerEvent

logger = structlog.get_logger(__name__)


class TriggerDispatcher(ABC):
    """Invokes the downstream action for a fired rule."""

    @abstractmethod
    async def dispatch(self, event: TriggerEvent, modules: list[str] | None = None) -> dict[str, Any]:
        """Run the actions for ``modules`` (default: all of the rule's modules)."""
        pass


class ModuleDispatcher(TriggerDispatcher):
    """
    Dispatches a fired rule to the handler registered for each of its
    ``modules_to_trigger``.
    """

    def __init__(self, default_handler: ModuleHandler | None = None):
        self._handlers: dict[str, ModuleHandler] = {}
        self.default_handler = default_handler

    def register_handler(self, module: str, handler: ModuleHandler) -> None:
        """
        Registers a handler instance for a module id.

        Args:
            module: The module id as it appears in ``modules_to_trigger`` (e.g., "H1", "FULL").
            handler: An instance of a class that implements the ModuleHandler interface.
        """
        if module in self._handlers:
            logger.warning("Handler for module is being overridden", module=module)
        self._handlers[module] = handler
        logger.info("Registered module handler", module=module, handler=handler.__class__.__name__)

    def registered_modules(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, event: TriggerEvent, modules: list[str] | None = None) -> dict[str, Any]:
        """
        Run the module handlers for the event.

        ``modules`` narrows the run to a subset, e.g. the modules that failed
        on a previous attempt.

        All modules are attempted even if one fails; failures are then raised
        together so the caller can apply its retry policy.

        Returns:
            Per-module results.

        Raises:
            DispatchError: if any handler raised.
        """
        results: dict[str, Any] = {}
        failures: dict[str, str] = {}

        for module in modules if modules is not None else event.rule.modules_to_trigger:
            handler = self._handlers.get(module, self.default_handler)
            if handler is None:
                logger.warning("No handler registered for module. Skipping.", module=module, rule_id=event.rule_id)
                results[module] = {"status": "skipped", "reason": "no handler"}
                continue

            try:
                result = await handler.handle(event)
                results[module] = {"status": "processed", "handler": handler.__class__.__name__, "result": result}
            except Exception as e:
                logger.exception("Module handler failed", module=module, rule_id=event.rule_id)
                failures[module] = str(e)

        if failures:
            raise DispatchError(event.rule_id, failures, results)

        return results


# The shared instance; unknown modules fall back to logging the firing
dispatcher = ModuleDispatcher(default_handler=LoggingHandler())
