"""
Health Monitoring HTTP Server for clock-sync.

Exposes the engine's cached offsets and calibration counters for
monitoring systems like Prometheus, or for a simple liveness probe.

Endpoints:
    GET /health     - Basic health check (200 OK if running)
    GET /status     - JSON offsets, calibration state and counters
    GET /metrics    - Prometheus-compatible metrics

Usage:
    from clock_sync.output.health_server import HealthServer
    
    server = HealthServer(port=8080)
    server.set_engine(engine)
    server.start()
"""

import json
import logging
import threading
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class HealthRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for health endpoints."""
    
    # Class-level reference to status callback
    get_status: Optional[Callable[[], Dict[str, Any]]] = None
    
    def log_message(self, format, *args):
        """Route access logs to debug level."""
        logger.debug("%s - %s", self.address_string(), format % args)
    
    def do_GET(self):
        """Handle GET requests."""
        if self.path == '/health':
            self._handle_health()
        elif self.path == '/status':
            self._handle_status()
        elif self.path == '/metrics':
            self._handle_metrics()
        else:
            self.send_error(404, "Not Found")
    
    def _send(self, code: int, content_type: str, body: bytes):
        self.send_response(code)
        self.send_header('Content-Type', content_type)
        self.end_headers()
        self.wfile.write(body)
    
    def _handle_health(self):
        """Basic health check - returns 200 if server is running."""
        self._send(200, 'text/plain', b'OK\n')
    
    def _handle_status(self):
        """Return JSON status with offsets and calibration state."""
        if not self.get_status:
            self._send(503, 'application/json', json.dumps({'error': 'No engine connected'}).encode())
            return
        try:
            status = self.get_status()
        except Exception as e:
            logger.exception(f"Status callback failed: {e}")
            self._send(500, 'application/json', json.dumps({'error': str(e)}).encode())
            return
        self._send(200, 'application/json', json.dumps(status, indent=2).encode())
    
    def _handle_metrics(self):
        """Return Prometheus-compatible metrics."""
        if not self.get_status:
            self._send(503, 'text/plain', b'# No engine connected\n')
            return
        try:
            metrics = self._format_prometheus_metrics(self.get_status())
        except Exception as e:
            logger.exception(f"Metrics rendering failed: {e}")
            self._send(500, 'text/plain', f'# Error: {e}\n'.encode())
            return
        self._send(200, 'text/plain; version=0.0.4', metrics.encode())
    
    def _format_prometheus_metrics(self, status: Dict[str, Any]) -> str:
        """Format engine status as Prometheus metrics."""
        stats = status.get('stats', {})
        lines = [
            '# HELP clock_sync_calibration_due 1 if the hourly calibration pass is due',
            '# TYPE clock_sync_calibration_due gauge',
            f'clock_sync_calibration_due {1 if status.get("calibration_due") else 0}',
            '',
            '# HELP clock_sync_calibrations_total Calibrations by outcome',
            '# TYPE clock_sync_calibrations_total counter',
        ]
        for outcome in ('success', 'degraded', 'failed'):
            lines.append(f'clock_sync_calibrations_total{{outcome="{outcome}"}} {stats.get(outcome, 0)}')
        
        lines.extend([
            '',
            '# HELP clock_sync_cache_misses_total Resolutions served without a cached offset',
            '# TYPE clock_sync_cache_misses_total counter',
            f'clock_sync_cache_misses_total {stats.get("cache_misses", 0)}',
            '',
            '# HELP clock_sync_resolutions_total Total time resolutions',
            '# TYPE clock_sync_resolutions_total counter',
            f'clock_sync_resolutions_total {stats.get("resolutions", 0)}',
            '',
            '# HELP clock_sync_uptime_seconds Engine uptime in seconds',
            '# TYPE clock_sync_uptime_seconds gauge',
            f'clock_sync_uptime_seconds {status.get("uptime_seconds", 0):.1f}',
        ])
        
        offsets = status.get('offsets_ms', {})
        if offsets:
            lines.extend([
                '',
                '# HELP clock_sync_offset_ms Cached offset of each timezone against the local clock',
                '# TYPE clock_sync_offset_ms gauge',
            ])
            for tz, offset in sorted(offsets.items()):
                lines.append(f'clock_sync_offset_ms{{timezone="{tz}"}} {offset}')
        
        lines.append('')
        return '\n'.join(lines)


class HealthServer:
    """
    HTTP server for health monitoring.
    
    Runs in a background thread and reports on a SynchronizationEngine.
    """
    
    def __init__(self, port: int = 8080, bind_address: str = '0.0.0.0'):
        """
        Initialize the health server.
        
        Args:
            port: HTTP port to listen on
            bind_address: Address to bind to (default: all interfaces)
        """
        self.port = port
        self.bind_address = bind_address
        self.server: Optional[HTTPServer] = None
        self.thread: Optional[threading.Thread] = None
        self.engine = None
        self._running = False
    
    def set_engine(self, engine):
        """
        Connect to a SynchronizationEngine for status reporting.
        
        Args:
            engine: SynchronizationEngine instance
        """
        self.engine = engine
        HealthRequestHandler.get_status = self._get_status
    
    def _get_status(self) -> Dict[str, Any]:
        if not self.engine:
            return {'error': 'No engine connected'}
        return self.engine.status()
    
    def start(self):
        """Start the health server in a background thread."""
        if self._running:
            logger.warning("Health server already running")
            return
        
        try:
            self.server = HTTPServer(
                (self.bind_address, self.port),
                HealthRequestHandler
            )
        except OSError as e:
            logger.error(f"Failed to start health server: {e}")
            return
        
        # handle_request must return periodically so stop() is noticed
        self.server.timeout = 1.0
        self._running = True
        
        self.thread = threading.Thread(
            target=self._serve,
            name="HealthServer",
            daemon=True
        )
        self.thread.start()
        
        logger.info(f"Health server started on http://{self.bind_address}:{self.port}")
        logger.info(f"  GET /health  - Health check")
        logger.info(f"  GET /status  - JSON status")
        logger.info(f"  GET /metrics - Prometheus metrics")
    
    def _serve(self):
        """Server loop (runs in background thread)."""
        while self._running:
            server = self.server
            if server is None:
                break
            try:
                server.handle_request()
            except OSError as e:
                if self._running:
                    logger.error(f"Health server error: {e}")
    
    def stop(self):
        """Stop the health server."""
        self._running = False
        if self.thread:
            self.thread.join(timeout=2.0)
        if self.server:
            self.server.server_close()
            self.server = None
        logger.info("Health server stopped")
