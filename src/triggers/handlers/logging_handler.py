from typing import Any

import structlog

from src.rules.models import NotificationSeverity
from src.triggers.handlers.base import ModuleHandler
from src.triggers.models import TriggerEvent

logger = structlog.get_logger(__name__)

_LEVELS = {
    NotificationSeverity.INFO: "info",
    NotificationSeverity.WARNING: "warning",
    NotificationSeverity.CRITICAL: "error",
}


class LoggingHandler(ModuleHandler):
    """Records the firing in the log at the rule's notification severity."""

    async def handle(self, event: TriggerEvent) -> dict[str, Any]:
        notification = event.rule.notification_config
        log_fn = getattr(logger, _LEVELS[notification.severity])
        log_fn(
            "Trigger fired",
            rule_id=event.rule_id,
            rule_name=event.rule.name,
            trigger_type=event.rule.trigger_type.value,
            modules=event.rule.modules_to_trigger,
            manual=event.manual,
            create_task=notification.create_task,
            trigger_count=event.rule.trigger_count,
        )
        return {"logged": True, "severity": notification.severity.value}
