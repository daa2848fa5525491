"""Discord Availability - infers who is (un)available from chat and keeps track of it."""
from .errors import (
    AvailabilityError,
    ConfigError,
    CorruptRecordError,
    InvalidTimeError,
    StorageError,
    StorageWriteError,
)
from .models import AvailabilityRecord, Intent, SortOrder, UserAvailabilityCollection

__version__ = "1.0.0"

__all__ = [
    "AvailabilityError",
    "ConfigError",
    "CorruptRecordError",
    "InvalidTimeError",
    "StorageError",
    "StorageWriteError",
    "AvailabilityRecord",
    "Intent",
    "SortOrder",
    "UserAvailabilityCollection",
]
