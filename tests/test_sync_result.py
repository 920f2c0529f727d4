"""
Unit tests for the contract data models.
"""

import json
from datetime import datetime

import pytest

from conftest import NEW_YEAR_2024_MS


class TestRemoteTime:
    """Remote payload decoding and UTC-normalized instants."""
    
    def test_instant_reads_wall_clock_as_utc(self):
        from clock_sync.interfaces.sync_result import RemoteTime
        
        remote = RemoteTime(2024, 1, 1, 9, 0, 0, 500, "Asia/Tokyo")
        
        assert remote.instant_millis == NEW_YEAR_2024_MS + 9 * 3600 * 1000 + 500
    
    def test_from_dict_uses_api_field_names(self):
        from clock_sync.interfaces.sync_result import RemoteTime
        
        remote = RemoteTime.from_dict({
            "year": 2024, "month": 3, "day": 31, "hour": 2, "minute": 30,
            "seconds": 0, "milliSeconds": 7, "timeZone": "Europe/Paris",
            "dstActive": True,
        })
        
        assert remote.milli_seconds == 7
        assert remote.time_zone == "Europe/Paris"
        assert remote.dst_active is True
        assert remote.day_of_week is None
    
    def test_from_dict_rejects_garbage(self):
        from clock_sync.exceptions import GatewayError
        from clock_sync.interfaces.sync_result import RemoteTime
        
        with pytest.raises(GatewayError):
            RemoteTime.from_dict({"year": "soon"})


class TestResolvedTime:
    """Calendar projection helpers."""
    
    def test_from_wall_millis(self):
        from clock_sync.interfaces.sync_result import ResolvedTime
        
        resolved = ResolvedTime.from_wall_millis(NEW_YEAR_2024_MS + 45296789, "UTC")
        
        assert (resolved.hour, resolved.minute, resolved.second, resolved.millisecond) == (12, 34, 56, 789)
        assert resolved.time_text() == "12:34:56"
        assert resolved.isoformat() == "2024-01-01T12:34:56.789"
        assert resolved.source == "offset"
    
    def test_before_epoch(self):
        from clock_sync.interfaces.sync_result import ResolvedTime
        
        resolved = ResolvedTime.from_wall_millis(-1, "UTC")
        
        assert resolved.to_datetime() == datetime(1969, 12, 31, 23, 59, 59, 999000)
    
    def test_leap_day(self):
        from clock_sync.interfaces.sync_result import ResolvedTime, wall_millis
        
        ms = wall_millis(datetime(2024, 2, 29, 23, 59, 59))
        resolved = ResolvedTime.from_wall_millis(ms + 1000, "UTC")
        
        assert (resolved.month, resolved.day, resolved.hour) == (3, 1, 0)
    
    def test_json(self):
        from clock_sync.interfaces.sync_result import ResolvedTime
        
        resolved = ResolvedTime.from_wall_millis(NEW_YEAR_2024_MS, "Asia/Tokyo", source="local")
        data = json.loads(resolved.to_json())
        
        assert data["timezone"] == "Asia/Tokyo"
        assert data["source"] == "local"
        assert data["year"] == 2024


class TestCalibrationOutcome:

    def test_values(self):
        from clock_sync.interfaces.sync_result import CalibrationOutcome
        
        assert CalibrationOutcome.SUCCESS.value == "SUCCESS"
        assert CalibrationOutcome.DEGRADED.value == "DEGRADED"
        assert CalibrationOutcome.FAILED.value == "FAILED"
        assert CalibrationOutcome("DEGRADED") is CalibrationOutcome.DEGRADED
