from src.triggers.dispatcher import ModuleDispatcher, TriggerDispatcher, dispatcher
from src.triggers.engine import TriggerEngine, get_trigger_engine
from src.triggers.models import TriggerEvent

__all__ = [
    "ModuleDispatcher",
    "TriggerDispatcher",
    "TriggerEngine",
    "TriggerEvent",
    "dispatcher",
    "get_trigger_engine",
]
