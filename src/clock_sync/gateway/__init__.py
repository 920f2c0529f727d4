"""Remote time source clients."""

from .time_api import RemoteTimeGateway, TimeApiGateway

__all__ = ["RemoteTimeGateway", "TimeApiGateway"]
