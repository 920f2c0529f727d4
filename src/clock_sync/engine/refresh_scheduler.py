"""
Refresh Scheduler

One periodic loop per consumer (the clock list, each floating overlay).
Every tick:

    1. calibrate_all(timezones) if the store-wide hour has elapsed
    2. resolve_time(tz) for every timezone (cache only)
    3. on_tick({tz: ResolvedTime})

then waits max(1, interval) minutes. The interval is read right before
each wait, so a change applies to the next wait and never to the one in
progress. Ticks never overlap within one scheduler.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from ..exceptions import InvalidTimezoneError
from ..interfaces.sync_result import ResolvedTime
from .sync_engine import SynchronizationEngine

logger = logging.getLogger('clock-sync.scheduler')

SECONDS_PER_MINUTE = 60


class RefreshScheduler:
    """
    Periodic resolve-and-deliver loop over a live set of timezones.
    
    Schedulers sharing an engine do not coordinate with each other; the
    engine's per-timezone single-flight and the atomic store take care of
    overlapping timezone sets.
    """
    
    def __init__(
        self,
        engine: SynchronizationEngine,
        name: str = "main",
        wait: Optional[Callable[[float], bool]] = None
    ):
        """
        Args:
            engine: Shared synchronization engine
            name: Label for logs and the loop thread
            wait: Blocking wait in seconds returning True when the loop
                  should end (default: the stop event's wait)
        """
        self.engine = engine
        self.name = name
        self._stop_event = threading.Event()
        self._wait = wait
        self._tick_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        
        self._get_timezones: Callable[[], List[str]] = list
        self._get_interval_minutes: Callable[[], int] = lambda: 1
        self._on_tick: Callable[[Dict[str, ResolvedTime]], None] = lambda results: None
        
        self.tick_count = 0
    
    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()
    
    def start(
        self,
        get_timezones: Callable[[], List[str]],
        get_interval_minutes: Callable[[], int],
        on_tick: Callable[[Dict[str, ResolvedTime]], None]
    ):
        """
        Start the loop on a background thread.
        
        Args:
            get_timezones: Returns the current timezone set (read every tick)
            get_interval_minutes: Returns the refresh interval (read every wait)
            on_tick: Sink receiving {timezone: ResolvedTime} after each tick
        """
        if self.is_running:
            logger.warning(f"[{self.name}] Scheduler already running")
            return
        
        self._get_timezones = get_timezones
        self._get_interval_minutes = get_interval_minutes
        self._on_tick = on_tick
        
        # Each run owns its event; a loop outliving a timed-out stop exits
        # after its current tick even if the scheduler is started again
        stop_event = threading.Event()
        self._stop_event = stop_event
        
        self._thread = threading.Thread(
            target=self._loop,
            args=(stop_event,),
            name=f"RefreshScheduler-{self.name}",
            daemon=True
        )
        self._thread.start()
        logger.info(f"[{self.name}] Scheduler started")
    
    def stop(self, timeout: Optional[float] = 5.0):
        """
        Stop scheduling ticks.
        
        A tick already running completes; calibrations it started are left
        to finish on the engine's pool.
        """
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.info(f"[{self.name}] Scheduler stopped after {self.tick_count} tick(s)")
    
    def next_wait_seconds(self) -> float:
        """Length of the next wait, from the interval as it is right now."""
        try:
            minutes = int(self._get_interval_minutes())
        except Exception as e:
            logger.error(f"[{self.name}] Could not read refresh interval: {e}")
            minutes = 1
        return max(1, minutes) * SECONDS_PER_MINUTE
    
    def _loop(self, stop_event: threading.Event):
        logger.debug(f"[{self.name}] Loop thread started")
        wait = self._wait or stop_event.wait
        
        while not stop_event.is_set():
            self.tick()
            
            if stop_event.is_set():
                break
            wait_seconds = self.next_wait_seconds()
            logger.debug(f"[{self.name}] Next update in {wait_seconds / SECONDS_PER_MINUTE:g} minutes")
            if wait(wait_seconds):
                break
        
        logger.debug(f"[{self.name}] Loop thread exiting")
    
    def tick(self) -> Dict[str, ResolvedTime]:
        """
        Run one tick body synchronously and deliver the result.
        
        Exceptions from calibration or from the sink are logged, not raised,
        so a broken consumer cannot kill the loop.
        """
        with self._tick_lock:
            self.tick_count += 1
            try:
                timezones = list(dict.fromkeys(self._get_timezones()))
            except Exception as e:
                logger.exception(f"[{self.name}] Could not read timezone set: {e}")
                return {}
            
            if timezones and self.engine.needs_calibration():
                try:
                    self.engine.calibrate_all(timezones)
                except Exception as e:
                    logger.exception(f"[{self.name}] Calibration pass failed: {e}")
            
            now_ms = self.engine.clock()
            results: Dict[str, ResolvedTime] = {}
            for tz in timezones:
                try:
                    results[tz] = self.engine.resolve_time(tz, now_ms)
                except InvalidTimezoneError as e:
                    logger.error(f"[{self.name}] {e}")
            
            try:
                self._on_tick(results)
            except Exception as e:
                logger.exception(f"[{self.name}] on_tick failed: {e}")
            
            return results
