"""Synchronization engine: offset cache, calibration and refresh loops."""

from .offset_store import OffsetStore, CALIBRATION_INTERVAL_MS
from .sync_engine import SynchronizationEngine
from .refresh_scheduler import RefreshScheduler

__all__ = ["OffsetStore", "CALIBRATION_INTERVAL_MS", "SynchronizationEngine", "RefreshScheduler"]
