from src.snapshots.provider import MetricSnapshotProvider, StaticSnapshotProvider, snapshot_provider

__all__ = [
    "MetricSnapshotProvider",
    "StaticSnapshotProvider",
    "snapshot_provider",
]
