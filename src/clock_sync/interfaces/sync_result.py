"""
Synchronization Result Data Models

These dataclasses define the contract between clock-sync and its consumers
(the clock list and the floating overlay windows), and the shape of the
answer returned by the remote time source.

All calendar arithmetic is UTC-normalized: a "wall" value in milliseconds
is the target zone's wall clock written as if it were UTC. An offset is
therefore ``wall_ms - utc_now_ms`` and projecting ``now + offset`` with
UTC calendar rules yields the target zone's local date and time.

Contract Version: 1.0.0
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
import json

from ..exceptions import GatewayError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def wall_millis(dt: datetime) -> int:
    """
    Convert a datetime's wall-clock fields to UTC-normalized milliseconds.
    
    The tzinfo (if any) is ignored: 09:00 in Tokyo becomes 09:00 UTC.
    """
    naive = dt.replace(tzinfo=timezone.utc)
    delta = naive - EPOCH
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


class CalibrationOutcome(str, Enum):
    """Result of a calibration attempt for one timezone."""
    SUCCESS = "SUCCESS"     # Offset measured against the remote source
    DEGRADED = "DEGRADED"   # Retries exhausted, offset derived from zone rules
    FAILED = "FAILED"       # No offset could be derived (invalid timezone)


@dataclass(frozen=True)
class ResolvedTime:
    """
    Point-in-time projection of the current time in one timezone.
    
    Computed on demand from ``local_now + offset``; never stored.
    """
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    millisecond: int
    timezone: str
    source: str = "offset"   # "offset" (cached) or "local" (cache miss)
    
    @classmethod
    def from_wall_millis(cls, wall_ms: int, tz_name: str, source: str = "offset") -> "ResolvedTime":
        """
        Project UTC-normalized wall milliseconds to calendar fields.
        
        Args:
            wall_ms: Target-zone wall clock expressed as UTC milliseconds
            tz_name: IANA identifier to tag the result with
            source: Where the value came from ("offset" or "local")
        """
        dt = EPOCH + timedelta(milliseconds=wall_ms)
        return cls(
            year=dt.year,
            month=dt.month,
            day=dt.day,
            hour=dt.hour,
            minute=dt.minute,
            second=dt.second,
            millisecond=dt.microsecond // 1000,
            timezone=tz_name,
            source=source,
        )
    
    def to_datetime(self) -> datetime:
        """Naive datetime holding the wall-clock fields."""
        return datetime(
            self.year, self.month, self.day,
            self.hour, self.minute, self.second,
            self.millisecond * 1000,
        )
    
    def isoformat(self) -> str:
        return self.to_datetime().isoformat(timespec='milliseconds')
    
    def time_text(self) -> str:
        """HH:MM:SS, as shown by the floating overlay."""
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"
    
    def to_dict(self) -> dict:
        return asdict(self)
    
    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


@dataclass(frozen=True)
class RemoteTime:
    """
    Current time for a timezone as reported by the remote time source.
    
    Field names follow the timeapi.io ``Time/current/zone`` response.
    """
    year: int
    month: int
    day: int
    hour: int
    minute: int
    seconds: int
    milli_seconds: int
    time_zone: str
    dst_active: bool = False
    day_of_week: Optional[str] = None
    
    @property
    def instant_millis(self) -> int:
        """Wall-clock fields as UTC-normalized milliseconds."""
        return wall_millis(datetime(
            self.year, self.month, self.day,
            self.hour, self.minute, self.seconds,
            self.milli_seconds * 1000,
        ))
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteTime":
        """
        Build from a decoded JSON payload.
        
        Raises:
            GatewayError: If required fields are missing or not integers
        """
        try:
            return cls(
                year=int(data["year"]),
                month=int(data["month"]),
                day=int(data["day"]),
                hour=int(data["hour"]),
                minute=int(data["minute"]),
                seconds=int(data["seconds"]),
                milli_seconds=int(data.get("milliSeconds", 0)),
                time_zone=str(data.get("timeZone", "")),
                dst_active=bool(data.get("dstActive", False)),
                day_of_week=data.get("dayOfWeek"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GatewayError(f"Malformed time payload: {e}") from e
