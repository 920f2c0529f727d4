"""
Synchronization Engine

Keeps wall-clock time for any number of IANA timezones without a network
round-trip per read.

    calibrate(tz)   ──▶ RemoteTimeGateway ──▶ offset = remote - local ──▶ OffsetStore
                          │ (3 attempts, 1s/2s backoff)
                          └─ exhausted ──▶ offset from tz database rules (DEGRADED)
    
    resolve_time(tz) ──▶ OffsetStore hit  ──▶ project(now + offset)
                     └─▶ miss ──▶ zone conversion of now + background calibrate(tz)

Offsets are UTC-normalized: the remote wall clock is read as if it were UTC
and compared with the true UTC clock, so an offset folds together the zone's
UTC offset and any skew of the local clock.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Iterable, Optional

from ..exceptions import InvalidTimezoneError
from ..interfaces.sync_result import CalibrationOutcome, ResolvedTime
from .offset_store import OffsetStore
from .zones import get_zone, zone_offset_millis

logger = logging.getLogger('clock-sync.engine')

MAX_RETRIES = 3
BACKOFF_MS = 1000


def system_clock_ms() -> int:
    """Milliseconds since the Unix epoch from the system clock."""
    return time.time_ns() // 1_000_000


class SynchronizationEngine:
    """
    Owns the offset cache and the calibration policy.
    
    Thread-safe: any number of RefreshScheduler loops may share one engine.
    Only one calibration per timezone runs at a time; a second request for
    the same timezone joins the one in flight.
    """
    
    def __init__(
        self,
        gateway,
        store: Optional[OffsetStore] = None,
        clock: Callable[[], int] = system_clock_ms,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = MAX_RETRIES,
        backoff_ms: int = BACKOFF_MS,
        max_workers: int = 4
    ):
        """
        Initialize the engine.
        
        Args:
            gateway: RemoteTimeGateway used for calibration
            store: Offset cache (a fresh one if not given)
            clock: Returns the local wall clock in ms since the epoch
            sleep: Blocking sleep in seconds, used between retries
            max_retries: Gateway attempts per calibration
            backoff_ms: Wait after failed attempt N is backoff_ms * N
            max_workers: Threads for background and batch calibration
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.gateway = gateway
        self.store = store if store is not None else OffsetStore()
        self.clock = clock
        self._sleep = sleep
        self.max_retries = max_retries
        self.backoff_ms = backoff_ms
        
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="Calibration",
        )
        self._inflight: Dict[str, Future] = {}
        self._queued: Dict[str, Future] = {}
        self._inflight_lock = threading.Lock()
        
        self._stats_lock = threading.Lock()
        self.stats = {
            'calibrations': 0,
            'success': 0,
            'degraded': 0,
            'failed': 0,
            'cache_misses': 0,
            'resolutions': 0,
            'start_time': time.time(),
        }
    
    def _count(self, key: str):
        with self._stats_lock:
            self.stats[key] += 1
    
    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    
    def get_offset(self, timezone: str) -> Optional[int]:
        """Cached offset for a timezone, or None."""
        return self.store.get(timezone)
    
    def needs_calibration(self) -> bool:
        """True when the store-wide calibration interval has elapsed."""
        return self.store.is_calibration_due(self.clock())
    
    def resolve_time(self, timezone: str, now_ms: Optional[int] = None) -> ResolvedTime:
        """
        Current time in a timezone, from cache. Never touches the network.
        
        On a cache miss the time is derived from the local clock and the
        zone's rules, and a background calibration is started.
        
        Args:
            timezone: IANA identifier
            now_ms: Local clock reading to project (default: engine clock)
        
        Raises:
            InvalidTimezoneError: If the identifier is unknown
        """
        if now_ms is None:
            now_ms = self.clock()
        self._count('resolutions')
        
        offset = self.store.get(timezone)
        if offset is not None:
            return ResolvedTime.from_wall_millis(now_ms + offset, timezone, source="offset")
        
        # Raises for an unknown zone before anything gets scheduled
        local_offset = zone_offset_millis(timezone, now_ms)
        self._count('cache_misses')
        logger.debug(f"{timezone}: no cached offset, using local zone rules")
        try:
            self.calibrate_in_background(timezone)
        except RuntimeError as e:
            # Pool already shut down
            logger.debug(f"{timezone}: background calibration not started: {e}")
        return ResolvedTime.from_wall_millis(now_ms + local_offset, timezone, source="local")
    
    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------
    
    def calibrate(self, timezone: str) -> CalibrationOutcome:
        """
        (Re)measure the offset for one timezone.
        
        Tries the gateway up to ``max_retries`` times, sleeping
        ``backoff_ms * attempt`` between attempts. If every attempt fails,
        stores an offset computed from the tz database and returns DEGRADED.
        Network errors are never raised.
        
        Raises:
            InvalidTimezoneError: If the identifier is unknown
        """
        get_zone(timezone)
        
        with self._inflight_lock:
            pending = self._inflight.get(timezone)
            if pending is None:
                future: Future = Future()
                self._inflight[timezone] = future
        if pending is not None:
            logger.debug(f"{timezone}: calibration already in flight, joining it")
            return pending.result()
        
        try:
            outcome = self._run_calibration(timezone)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(outcome)
            return outcome
        finally:
            with self._inflight_lock:
                self._inflight.pop(timezone, None)
    
    def _run_calibration(self, timezone: str) -> CalibrationOutcome:
        self._count('calibrations')
        
        for attempt in range(1, self.max_retries + 1):
            try:
                remote = self.gateway.fetch(timezone)
                offset = remote.instant_millis - self.clock()
            except Exception as e:
                logger.warning(
                    f"{timezone}: calibration attempt {attempt}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries:
                    self._sleep(self.backoff_ms * attempt / 1000.0)
                continue
            
            self.store.set(timezone, offset)
            self._count('success')
            logger.info(f"{timezone}: calibrated, offset={offset:+d} ms (attempt {attempt})")
            return CalibrationOutcome.SUCCESS
        
        now_ms = self.clock()
        offset = zone_offset_millis(timezone, now_ms)
        self.store.set(timezone, offset)
        self._count('degraded')
        logger.warning(
            f"{timezone}: remote source unavailable after {self.max_retries} attempts, "
            f"using zone rules (offset={offset:+d} ms)"
        )
        return CalibrationOutcome.DEGRADED
    
    def calibrate_in_background(self, timezone: str) -> Future:
        """
        Start a calibration on the engine's worker pool.
        
        Returns the existing Future if a calibration for the timezone is
        already queued or running.
        """
        with self._inflight_lock:
            pending = self._queued.get(timezone) or self._inflight.get(timezone)
            if pending is not None:
                return pending
            future = self._executor.submit(self.calibrate, timezone)
            self._queued[timezone] = future
        
        future.add_done_callback(lambda f: self._forget_queued(timezone, f))
        return future
    
    def _forget_queued(self, timezone: str, future: Future):
        with self._inflight_lock:
            if self._queued.get(timezone) is future:
                del self._queued[timezone]
    
    def calibrate_all(self, timezones: Iterable[str]) -> Dict[str, CalibrationOutcome]:
        """
        Calibrate a batch of timezones, then mark the store calibrated once.
        
        Calibrations run concurrently on the worker pool. An invalid
        identifier, or any other error escaping a calibration, is logged and
        reported as FAILED without affecting the rest of the batch.
        
        Returns:
            Outcome per timezone, in input order (duplicates collapsed)
        """
        unique = list(dict.fromkeys(timezones))
        logger.info(f"Starting calibration of {len(unique)} timezone(s)")
        
        futures = {tz: self._executor.submit(self.calibrate, tz) for tz in unique}
        outcomes: Dict[str, CalibrationOutcome] = {}
        for tz, future in futures.items():
            try:
                outcomes[tz] = future.result()
            except InvalidTimezoneError as e:
                logger.error(f"Calibration skipped: {e}")
                self._count('failed')
                outcomes[tz] = CalibrationOutcome.FAILED
            except Exception as e:
                logger.exception(f"{tz}: calibration failed: {e}")
                self._count('failed')
                outcomes[tz] = CalibrationOutcome.FAILED
        
        self.store.mark_calibrated(self.clock())
        
        summary = ", ".join(f"{tz}={o.value}" for tz, o in outcomes.items())
        logger.info(f"Completed calibration: {summary or 'nothing to do'}")
        return outcomes
    
    def inflight(self):
        """Timezones with a calibration currently running."""
        with self._inflight_lock:
            return sorted(self._inflight)
    
    def status(self) -> Dict:
        """JSON-friendly snapshot for the health server."""
        with self._stats_lock:
            stats = dict(self.stats)
        return {
            'timestamp': time.time(),
            'offsets_ms': self.store.snapshot(),
            'last_calibrated_at_ms': self.store.last_calibrated_at,
            'calibration_due': self.needs_calibration(),
            'calibrating': self.inflight(),
            'uptime_seconds': time.time() - stats.pop('start_time'),
            'stats': stats,
        }
    
    def shutdown(self, wait: bool = True):
        """Stop the worker pool. In-flight calibrations finish if wait is True."""
        self._executor.shutdown(wait=wait)
        logger.info("SynchronizationEngine stopped")
        logger.info(f"  Calibrations: {self.stats['calibrations']}")
        logger.info(f"  Success/degraded/failed: "
                    f"{self.stats['success']}/{self.stats['degraded']}/{self.stats['failed']}")
