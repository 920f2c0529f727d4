"""Contract types shared by the engine, the gateway and consumers."""

from .sync_result import CalibrationOutcome, RemoteTime, ResolvedTime

__all__ = ["CalibrationOutcome", "RemoteTime", "ResolvedTime"]
