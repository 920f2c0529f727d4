#!/usr/bin/env python3
"""
clock-sync: Cached World-Clock Synchronization

Main entry point for the clock-sync daemon. This service:
1. Fetches authoritative time per timezone from timeapi.io
2. Caches an offset against the local clock for each timezone
3. Re-derives the displayed time from that offset on every refresh
4. Re-calibrates every hour, falling back to tz database rules offline
5. Optionally serves /health, /status and /metrics over HTTP

Usage:
    # Start daemon
    clock-sync --config /etc/clock-sync/config.toml
    
    # One calibration pass, print the times, exit
    clock-sync --timezone Asia/Tokyo --timezone Europe/Paris --once

Consumers:
    The clock list is the [refresh] section. Each [[overlays]] entry is a
    floating-window consumer with its own timezones and interval; all of
    them share one engine and one offset cache.
"""

import argparse
import copy
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

# Set up logging before imports that use it
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger('clock-sync')

from .engine import OffsetStore, RefreshScheduler, SynchronizationEngine
from .exceptions import ClockSyncError
from .gateway.time_api import TimeApiGateway
from .interfaces.sync_result import CalibrationOutcome, ResolvedTime
from .output.health_server import HealthServer

DEFAULT_CONFIG: Dict[str, Any] = {
    'gateway': {
        'base_url': 'https://timeapi.io/api/',
        'timeout': 10.0,
    },
    'sync': {
        'calibration_interval_minutes': 60,
        'max_retries': 3,
        'backoff_ms': 1000,
        'max_workers': 4,
    },
    'refresh': {
        'interval_minutes': 5,
        'timezones': ['UTC'],
    },
    'overlays': [],
    'output': {
        'health_port': 0,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a TOML file, layered over the defaults.
    
    Sections present in the file replace keys of the matching default
    section; a missing or absent file yields the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not config_path:
        return config
    
    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Config file {path} not found, using defaults")
        return config
    
    with open(path, 'r') as f:
        loaded = toml.load(f)
    
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def format_times(results: Dict[str, ResolvedTime]) -> str:
    """One-line summary: 'Asia/Tokyo 09:00:00, UTC 00:00:00'."""
    return ", ".join(f"{tz} {rt.time_text()}" for tz, rt in results.items())


class ClockConsumer:
    """
    A named display consumer: a timezone set, a refresh interval and the
    latest results delivered by its scheduler.
    
    Timezones and interval can be changed while the scheduler runs; the
    scheduler reads them on every tick and wait.
    """
    
    def __init__(self, name: str, timezones: List[str], interval_minutes: int):
        self.name = name
        self._lock = threading.Lock()
        self._timezones = list(timezones)
        self.interval_minutes = interval_minutes
        self.latest: Dict[str, ResolvedTime] = {}
    
    def get_timezones(self) -> List[str]:
        with self._lock:
            return list(self._timezones)
    
    def set_timezones(self, timezones: List[str]):
        with self._lock:
            self._timezones = list(timezones)
    
    def get_interval_minutes(self) -> int:
        return self.interval_minutes
    
    def on_tick(self, results: Dict[str, ResolvedTime]):
        self.latest = results
        if results:
            logger.info(f"[{self.name}] {format_times(results)}")


class ClockSyncDaemon:
    """
    Main clock-sync daemon.
    
    Builds one engine and one RefreshScheduler per consumer, and runs until
    SIGTERM/SIGINT.
    """
    
    def __init__(self, config: Dict[str, Any], gateway=None):
        """
        Initialize the daemon.
        
        Args:
            config: Configuration dictionary (see load_config)
            gateway: Override the remote time source (for testing)
        """
        self.config = config
        gateway_cfg = config.get('gateway', {})
        sync_cfg = config.get('sync', {})
        refresh_cfg = config.get('refresh', {})
        
        self.gateway = gateway or TimeApiGateway(
            base_url=gateway_cfg.get('base_url', 'https://timeapi.io/api/'),
            timeout=float(gateway_cfg.get('timeout', 10.0)),
        )
        self.store = OffsetStore(
            calibration_interval_ms=int(sync_cfg.get('calibration_interval_minutes', 60)) * 60 * 1000
        )
        self.engine = SynchronizationEngine(
            self.gateway,
            store=self.store,
            max_retries=int(sync_cfg.get('max_retries', 3)),
            backoff_ms=int(sync_cfg.get('backoff_ms', 1000)),
            max_workers=int(sync_cfg.get('max_workers', 4)),
        )
        
        self.consumers: List[ClockConsumer] = [
            ClockConsumer(
                'clocks',
                refresh_cfg.get('timezones', []),
                int(refresh_cfg.get('interval_minutes', 5)),
            )
        ]
        for i, overlay in enumerate(config.get('overlays', []), 1):
            self.consumers.append(ClockConsumer(
                overlay.get('name', f'overlay-{i}'),
                overlay.get('timezones', []),
                int(overlay.get('interval_minutes', refresh_cfg.get('interval_minutes', 5))),
            ))
        
        self.schedulers: List[RefreshScheduler] = []
        self.health_server: Optional[HealthServer] = None
        self._shutdown = threading.Event()
        
        logger.info("=" * 60)
        logger.info("clock-sync initializing")
        logger.info(f"  Remote source: {gateway_cfg.get('base_url', 'https://timeapi.io/api/')}")
        for consumer in self.consumers:
            logger.info(f"  {consumer.name}: {', '.join(consumer.get_timezones()) or '(none)'} "
                        f"every {consumer.interval_minutes} min")
        logger.info("=" * 60)
    
    def run_once(self) -> Dict[str, ResolvedTime]:
        """Calibrate every configured timezone once and resolve them."""
        timezones = list(dict.fromkeys(
            tz for consumer in self.consumers for tz in consumer.get_timezones()
        ))
        outcomes = self.engine.calibrate_all(timezones)
        results = {}
        for tz, outcome in outcomes.items():
            if outcome is CalibrationOutcome.FAILED:
                continue
            results[tz] = self.engine.resolve_time(tz)
        return results
    
    def start(self):
        """Start the daemon and block until a shutdown signal."""
        logger.info("Starting clock-sync daemon")
        
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)
        
        health_port = int(self.config.get('output', {}).get('health_port', 0))
        if health_port > 0:
            self.health_server = HealthServer(port=health_port)
            self.health_server.set_engine(self.engine)
            self.health_server.start()
        
        try:
            for consumer in self.consumers:
                scheduler = RefreshScheduler(self.engine, name=consumer.name)
                scheduler.start(
                    consumer.get_timezones,
                    consumer.get_interval_minutes,
                    consumer.on_tick,
                )
                self.schedulers.append(scheduler)
            
            while not self._shutdown.wait(1.0):
                pass
        finally:
            self.close()
    
    def stop(self):
        self._shutdown.set()
    
    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.stop()
    
    def close(self):
        """Clean up resources on shutdown."""
        logger.info("Cleaning up...")
        for scheduler in self.schedulers:
            scheduler.stop()
        if self.health_server:
            self.health_server.stop()
        self.engine.shutdown(wait=True)
        if hasattr(self.gateway, 'close'):
            self.gateway.close()
        logger.info("clock-sync stopped")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='clock-sync: Cached World-Clock Synchronization',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Start with config file
    clock-sync --config /etc/clock-sync/config.toml
    
    # Watch two zones, refresh every minute, expose /metrics on 8080
    clock-sync --timezone Asia/Tokyo --timezone America/New_York --interval 1 --health-port 8080
    
    # List zones known to the remote source
    clock-sync --list-timezones
        """
    )
    
    parser.add_argument(
        '--config', '-c',
        help='Path to TOML configuration file'
    )
    parser.add_argument(
        '--timezone', '-t',
        action='append',
        help='IANA timezone to track (repeatable, overrides config)'
    )
    parser.add_argument(
        '--interval', '-i',
        type=int,
        help='Refresh interval in minutes (1, 5 or 10 in the reference UI)'
    )
    parser.add_argument(
        '--health-port',
        type=int,
        help='HTTP port for health monitoring endpoint (0 to disable)'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Calibrate once, print the resolved times and exit'
    )
    parser.add_argument(
        '--list-timezones',
        action='store_true',
        help='Print the timezones known to the remote source and exit'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    
    args = parser.parse_args()
    
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    
    config = load_config(args.config)
    
    # Apply command-line overrides
    if args.timezone:
        config['refresh']['timezones'] = args.timezone
    if args.interval is not None:
        config['refresh']['interval_minutes'] = args.interval
    if args.health_port is not None:
        config['output']['health_port'] = args.health_port
    
    if args.list_timezones:
        gateway_cfg = config['gateway']
        with TimeApiGateway(gateway_cfg['base_url'], float(gateway_cfg['timeout'])) as gateway:
            try:
                for name in gateway.available_timezones():
                    print(name)
            except ClockSyncError as e:
                logger.error(f"Could not list timezones: {e}")
                sys.exit(1)
        return
    
    daemon = ClockSyncDaemon(config)
    
    if args.once:
        try:
            for tz, resolved in daemon.run_once().items():
                print(f"{tz:32s} {resolved.isoformat()}")
        finally:
            daemon.close()
        return
    
    daemon.start()


if __name__ == '__main__':
    main()
