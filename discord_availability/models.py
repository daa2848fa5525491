"""Availability records and the bounded per-user collection that holds them."""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class Intent(Enum):
    """What a message says about its author."""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"

    @property
    def is_available(self) -> bool:
        return self is Intent.AVAILABLE

    @classmethod
    def from_flag(cls, is_available: bool) -> "Intent":
        return cls.AVAILABLE if is_available else cls.UNAVAILABLE


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class AvailabilityRecord:
    """
    A user's statement that they will be (un)available at a point in time.

    Records are immutable once created. `is_default` is reserved and always
    False; it is only kept so the persisted format stays stable.
    """
    user_id: str
    user_name: str
    is_available: bool
    availability_time: datetime
    is_default: bool = False

    @property
    def timestamp(self) -> int:
        """Epoch seconds of `availability_time`."""
        return int(self.availability_time.timestamp())

    @property
    def intent(self) -> Intent:
        return Intent.from_flag(self.is_available)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "userName": self.user_name,
            "userIsAvailable": self.is_available,
            "userAvailabilityTime": self.timestamp,
            "userIsAvailablePerDefault": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AvailabilityRecord":
        """
        Build a record from its persisted form.

        Raises:
            ValueError: if a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        try:
            user_id = str(data["userId"])
            user_name = str(data.get("userName", ""))
            is_available = data["userIsAvailable"]
            epoch = int(data["userAvailabilityTime"])
        except KeyError as e:
            raise ValueError(f"Missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise ValueError(f"Bad userAvailabilityTime: {e}") from e

        if not isinstance(is_available, bool):
            raise ValueError("userIsAvailable must be a boolean")

        return cls(
            user_id=user_id,
            user_name=user_name,
            is_available=is_available,
            availability_time=datetime.fromtimestamp(epoch, tz=timezone.utc),
            is_default=bool(data.get("userIsAvailablePerDefault", False)),
        )


class UserAvailabilityCollection:
    """
    Append-ordered, size-capped list of one user's availability records.

    Once `max_size` is reached, adding a record evicts the oldest one by
    insertion order. Sorting reorders the in-memory list only.
    """

    def __init__(self, user_id: str, max_size: int = 100,
                 records: Optional[List[AvailabilityRecord]] = None):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.user_id = str(user_id)
        self.max_size = max_size
        self._records: List[AvailabilityRecord] = []
        for record in records or []:
            self.add(record)

    def add(self, record: AvailabilityRecord) -> List[AvailabilityRecord]:
        """
        Append a record, evicting from the front while at capacity.

        Returns:
            The evicted records, oldest first (usually empty)
        """
        if record.user_id != self.user_id:
            raise ValueError(
                f"Record for user {record.user_id} added to collection of {self.user_id}"
            )

        evicted = []
        while len(self._records) >= self.max_size:
            evicted.append(self._records.pop(0))
        self._records.append(record)
        return evicted

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AvailabilityRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> AvailabilityRecord:
        return self._records[index]

    def __bool__(self) -> bool:
        return bool(self._records)

    def first(self) -> AvailabilityRecord:
        return self._records[0]

    def latest(self) -> AvailabilityRecord:
        """The most recently appended record."""
        return self._records[-1]

    def sort(self, order: SortOrder = SortOrder.ASC):
        self._records.sort(
            key=lambda r: r.availability_time,
            reverse=(order is SortOrder.DESC),
        )

    def to_json(self) -> Dict[str, Dict[str, Any]]:
        """
        Project to a mapping keyed by each record's epoch timestamp.

        Records sharing a timestamp overwrite each other; the later one wins
        and takes the later position.
        """
        projection: Dict[str, Dict[str, Any]] = {}
        for record in self._records:
            key = str(record.timestamp)
            projection.pop(key, None)
            projection[key] = record.to_dict()
        return projection

    @classmethod
    def from_json(cls, user_id: str, data: Any, max_size: int = 100) -> "UserAvailabilityCollection":
        """
        Rebuild a collection from a persisted file body.

        Accepts the timestamp-keyed projection as well as a bare single
        record (the format older versions wrote).

        Raises:
            ValueError: if the body or any record in it is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        if "userId" in data:
            entries = [data]
        else:
            entries = list(data.values())

        records = [AvailabilityRecord.from_dict(entry) for entry in entries]
        for record in records:
            if record.user_id != str(user_id):
                raise ValueError(f"File for user {user_id} holds a record for {record.user_id}")

        # Keep the newest records if the cap shrank since the file was written
        return cls(user_id, max_size=max_size, records=records[-max_size:])
