"""
Remote Time Gateway

The engine's only network dependency. ``RemoteTimeGateway`` is the
capability the engine consumes; ``TimeApiGateway`` implements it against
the timeapi.io REST service.

Every failure (transport error, timeout, non-2xx status, undecodable body)
is raised as GatewayError so the engine has a single thing to retry on.

Usage:
    with TimeApiGateway() as gateway:
        remote = gateway.fetch("Asia/Tokyo")
        print(remote.hour, remote.minute)
"""

import logging
from typing import List, Optional, Protocol

import httpx

from ..exceptions import GatewayError
from ..interfaces.sync_result import RemoteTime

logger = logging.getLogger('clock-sync.gateway')

DEFAULT_BASE_URL = "https://timeapi.io/api/"
DEFAULT_TIMEOUT = 10.0


class RemoteTimeGateway(Protocol):
    """Anything that can report the current time for a timezone."""
    
    def fetch(self, timezone: str) -> RemoteTime:
        ...


class TimeApiGateway:
    """
    timeapi.io client.
    
    Endpoints:
        GET Time/current/zone?timeZone=<tz>   - current time in a zone
        GET TimeZone/AvailableTimeZones       - list of zone identifiers
    """
    
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None
    ):
        """
        Initialize the gateway.
        
        Args:
            base_url: API root (must end with a slash for relative paths)
            timeout: Connect/read/write timeout per request in seconds
            client: Pre-built httpx client (tests pass one with a MockTransport)
        """
        if not base_url.endswith('/'):
            base_url += '/'
        self.base_url = base_url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
        )
    
    def _get_json(self, path: str, params: Optional[dict] = None):
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise GatewayError(f"{path}: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"{path}: {e.__class__.__name__}: {e}") from e
        except ValueError as e:
            raise GatewayError(f"{path}: invalid JSON: {e}") from e
    
    def fetch(self, timezone: str) -> RemoteTime:
        """
        Get the current time for a timezone.
        
        Raises:
            GatewayError: On any network or decoding failure
        """
        logger.info(f"Getting time for timezone: {timezone}")
        try:
            data = self._get_json("Time/current/zone", params={"timeZone": timezone})
            if not isinstance(data, dict):
                raise GatewayError(f"Unexpected payload type {type(data).__name__}")
            remote = RemoteTime.from_dict(data)
        except GatewayError as e:
            logger.error(f"Error retrieving time for {timezone}: {e}")
            raise
        logger.debug(f"Successfully retrieved time for {timezone}")
        return remote
    
    def available_timezones(self) -> List[str]:
        """List the zone identifiers the service knows about."""
        logger.info("Getting available timezones")
        try:
            data = self._get_json("TimeZone/AvailableTimeZones")
            if not isinstance(data, list):
                raise GatewayError(f"Unexpected payload type {type(data).__name__}")
        except GatewayError as e:
            logger.error(f"Error retrieving available timezones: {e}")
            raise
        logger.debug(f"Retrieved {len(data)} timezones")
        return [str(name) for name in data]
    
    def close(self):
        if self._owns_client:
            self._client.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc, tb):
        self.close()
