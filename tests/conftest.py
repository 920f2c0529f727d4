"""
Pytest configuration and fixtures for clock-sync tests.
"""

import pytest
import sys
import threading
from datetime import datetime
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from clock_sync.exceptions import GatewayError
from clock_sync.interfaces.sync_result import RemoteTime

# 2024-01-01T00:00:00Z
NEW_YEAR_2024_MS = 1704067200000
HOUR_MS = 60 * 60 * 1000


def remote_time(dt: datetime, tz: str) -> RemoteTime:
    """RemoteTime carrying the wall-clock fields of dt."""
    return RemoteTime(
        year=dt.year, month=dt.month, day=dt.day,
        hour=dt.hour, minute=dt.minute, seconds=dt.second,
        milli_seconds=dt.microsecond // 1000,
        time_zone=tz,
    )


class FakeClock:
    """Settable millisecond clock."""
    
    def __init__(self, now_ms: int = NEW_YEAR_2024_MS):
        self.now_ms = now_ms
        self._lock = threading.Lock()
    
    def __call__(self) -> int:
        with self._lock:
            return self.now_ms
    
    def advance(self, ms: int):
        with self._lock:
            self.now_ms += ms


class RecordingSleep:
    """Sleep stand-in that records durations and advances a FakeClock."""
    
    def __init__(self, clock: FakeClock = None):
        self.calls = []
        self.clock = clock
    
    def __call__(self, seconds: float):
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(int(seconds * 1000))


class FakeGateway:
    """
    Gateway driven by a handler(timezone, attempt) that returns a
    RemoteTime or raises. Attempts are counted per timezone.
    """
    
    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self._attempts = {}
        self._lock = threading.Lock()
    
    def fetch(self, timezone: str) -> RemoteTime:
        with self._lock:
            self.calls.append(timezone)
            attempt = self._attempts.get(timezone, 0) + 1
            self._attempts[timezone] = attempt
        return self.handler(timezone, attempt)


def always_fail(timezone, attempt):
    raise GatewayError("connection refused")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture
def make_engine(clock, sleep):
    """Factory for engines sharing the test clock; shut down afterwards."""
    from clock_sync.engine.sync_engine import SynchronizationEngine
    
    engines = []
    
    def factory(gateway, **kwargs):
        kwargs.setdefault('clock', clock)
        kwargs.setdefault('sleep', sleep)
        engine = SynchronizationEngine(gateway, **kwargs)
        engines.append(engine)
        return engine
    
    yield factory
    
    for engine in engines:
        engine.shutdown(wait=True)
