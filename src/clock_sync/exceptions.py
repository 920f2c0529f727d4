"""Exception hierarchy for clock-sync."""


class ClockSyncError(Exception):
    """Base class for clock-sync errors."""


class GatewayError(ClockSyncError):
    """The remote time source could not be reached or returned garbage."""


class InvalidTimezoneError(ClockSyncError, ValueError):
    """The timezone identifier is not in the IANA database."""
    
    def __init__(self, timezone: str):
        super().__init__(f"Unknown timezone: {timezone!r}")
        self.timezone = timezone
