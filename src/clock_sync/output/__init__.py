"""Output modules for clock-sync."""

from .health_server import HealthServer

__all__ = ["HealthServer"]
