"""
Metric snapshot providers.

The engine only consumes a ``metric name -> value`` mapping per tick; where
the values come from is up to the provider.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping

import structlog

from src.rules.models import MetricSnapshot

logger = structlog.get_logger(__name__)


class MetricSnapshotProvider(ABC):
    """Supplies the current metric values for an evaluation tick."""

    @abstractmethod
    async def get_current(self) -> MetricSnapshot:
        pass


class StaticSnapshotProvider(MetricSnapshotProvider):
    """
    Holds the latest pushed metric values.

    Producers call ``update`` as measurements arrive; the scheduler reads a
    copy on each tick.
    """

    def __init__(self, values: Mapping[str, float] | None = None):
        self._values: MetricSnapshot = dict(values or {})

    def update(self, values: Mapping[str, float]) -> None:
        self._values.update(values)
        logger.debug("Metrics updated", metrics=sorted(values))

    def clear(self) -> None:
        self._values.clear()

    async def get_current(self) -> MetricSnapshot:
        return dict(self._values)


snapshot_provider = StaticSnapshotProvider()
