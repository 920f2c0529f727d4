"""
IANA timezone helpers.

Lookups go through the platform's tz database via ``zoneinfo``; an unknown
identifier is turned into InvalidTimezoneError so callers see a single
error type for it.
"""

from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..exceptions import InvalidTimezoneError


@lru_cache(maxsize=256)
def get_zone(tz_name: str) -> ZoneInfo:
    """
    Look up an IANA zone.
    
    Raises:
        InvalidTimezoneError: If the identifier is empty or unknown
    """
    if not tz_name or not isinstance(tz_name, str):
        raise InvalidTimezoneError(str(tz_name))
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(tz_name) from e


def zone_offset_millis(tz_name: str, now_ms: int) -> int:
    """
    UTC offset of a zone at a given instant, DST included.
    
    Args:
        tz_name: IANA identifier
        now_ms: Instant in milliseconds since the Unix epoch
    
    Returns:
        Offset in milliseconds (e.g. 32400000 for Asia/Tokyo)
    """
    zone = get_zone(tz_name)
    instant = datetime.fromtimestamp(now_ms / 1000.0, tz=timezone.utc)
    delta = instant.astimezone(zone).utcoffset()
    return int(delta.total_seconds() * 1000)
