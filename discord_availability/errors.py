"""Exception hierarchy shared by all components."""
from pathlib import Path
from typing import Optional


class AvailabilityError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(AvailabilityError):
    """Configuration is missing or invalid. Fatal at startup."""


class InvalidTimeError(AvailabilityError):
    """A time clause could not be turned into a point in time."""

    def __init__(self, clause: str, reason: str = "unparseable"):
        self.clause = clause
        self.reason = reason
        super().__init__(f"Invalid time '{clause}': {reason}")


class StorageError(AvailabilityError):
    """Something went wrong reading or writing the availabilities directory."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(message)


class StorageWriteError(StorageError):
    """A user's availability file could not be written."""


class CorruptRecordError(StorageError):
    """A user's availability file exists but cannot be decoded."""
