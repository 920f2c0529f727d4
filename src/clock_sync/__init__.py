"""
clock-sync: Cached World-Clock Synchronization

Keeps wall-clock time for an arbitrary set of IANA timezones without a
network round-trip on every read. Authoritative time is fetched once per
timezone, turned into an offset against the local clock, and reused until
the next hourly calibration.

Architecture:
    timeapi.io → SynchronizationEngine (OffsetStore) → RefreshScheduler → consumers

Consumers (the clock list, floating overlay windows) each own a
RefreshScheduler with their own timezone set and refresh interval, and
share one engine.

Version: 1.0.0
"""

__version__ = "1.0.0"

from .exceptions import ClockSyncError, GatewayError, InvalidTimezoneError
from .interfaces.sync_result import (
    CalibrationOutcome,
    RemoteTime,
    ResolvedTime,
)
from .engine import OffsetStore, SynchronizationEngine, RefreshScheduler

__all__ = [
    "CalibrationOutcome",
    "RemoteTime",
    "ResolvedTime",
    "OffsetStore",
    "SynchronizationEngine",
    "RefreshScheduler",
    "ClockSyncError",
    "GatewayError",
    "InvalidTimezoneError",
    "__version__",
]
