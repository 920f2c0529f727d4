"""
Offset Store

Thread-safe mapping of timezone -> offset (ms) with a single store-wide
"last calibrated at" timestamp. Shared by every scheduler that uses the
same SynchronizationEngine; the engine is the only writer.
"""

import logging
import threading
from typing import Dict, Optional

logger = logging.getLogger('clock-sync.store')

CALIBRATION_INTERVAL_MS = 60 * 60 * 1000  # 1 hour


class OffsetStore:
    """
    Concurrency-safe offset cache.
    
    Each timezone holds at most one offset; ``set`` replaces it under the
    lock so readers only ever see a complete value.
    """
    
    def __init__(self, calibration_interval_ms: int = CALIBRATION_INTERVAL_MS):
        """
        Args:
            calibration_interval_ms: Age after which a calibration pass is due
        """
        self.calibration_interval_ms = calibration_interval_ms
        self._offsets: Dict[str, int] = {}
        self._last_calibrated_at: Optional[int] = None
        self._lock = threading.Lock()
    
    def get(self, timezone: str) -> Optional[int]:
        """Offset for a timezone, or None if it was never calibrated."""
        with self._lock:
            return self._offsets.get(timezone)
    
    def set(self, timezone: str, offset_ms: int):
        """Insert or overwrite the offset for a timezone."""
        with self._lock:
            self._offsets[timezone] = int(offset_ms)
        logger.debug(f"Updated offset for {timezone}: {offset_ms} ms")
    
    def clear(self):
        """Drop every offset and forget the last calibration."""
        with self._lock:
            self._offsets.clear()
            self._last_calibrated_at = None
        logger.info("Offset store cleared")
    
    def snapshot(self) -> Dict[str, int]:
        """Copy of all offsets."""
        with self._lock:
            return dict(self._offsets)
    
    @property
    def last_calibrated_at(self) -> Optional[int]:
        with self._lock:
            return self._last_calibrated_at
    
    def mark_calibrated(self, now_ms: int):
        """Record the end of a calibration pass."""
        with self._lock:
            self._last_calibrated_at = int(now_ms)
    
    def is_calibration_due(self, now_ms: int) -> bool:
        """True if never calibrated or the last pass is older than the interval."""
        with self._lock:
            if self._last_calibrated_at is None:
                return True
            return now_ms - self._last_calibrated_at > self.calibration_interval_ms
    
    def __contains__(self, timezone: str) -> bool:
        with self._lock:
            return timezone in self._offsets
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._offsets)
