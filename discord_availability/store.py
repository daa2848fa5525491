"""
Per-user availability storage.

Each user owns one JSON file, `<user_id>.json`, in a flat directory. The file
holds the user's whole bounded collection, keyed by epoch timestamp, and is
replaced wholesale (write to a temp file, then rename) on every append.
"""
import asyncio
import json
import logging
import os
import tempfile
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .errors import CorruptRecordError, StorageWriteError
from .models import AvailabilityRecord, SortOrder, UserAvailabilityCollection

logger = logging.getLogger("Availability.Store")


@dataclass
class ScanResult:
    """Result of reading the whole availabilities directory."""
    records: List[AvailabilityRecord] = field(default_factory=list)
    skipped: Dict[Path, str] = field(default_factory=dict)


class AvailabilityStore:
    """
    Reads and writes users' availability collections.

    `append` is a read-modify-write of one file. It runs the file I/O in a
    worker thread, so it holds a per-user lock to keep two commits for the
    same user from losing each other's records.
    """

    def __init__(self, directory: Path, max_per_user: int = 100):
        if max_per_user < 1:
            raise ValueError(f"max_per_user must be at least 1, got {max_per_user}")
        self.directory = Path(directory)
        self.max_per_user = max_per_user
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def path_for(self, user_id: str) -> Path:
        return self.directory / f"{user_id}.json"

    async def append(self, user_id: str, user_name: str, is_available: bool,
                     when: datetime) -> AvailabilityRecord:
        """
        Add a record to a user's collection and persist it.

        Args:
            user_id: Stable user identity (also the file name)
            user_name: Display name, informational only
            is_available: True for available, False for unavailable
            when: Aware datetime of the (un)availability

        Returns:
            The stored record

        Raises:
            StorageWriteError: if the file could not be written
        """
        record = AvailabilityRecord(
            user_id=str(user_id),
            user_name=user_name,
            is_available=is_available,
            availability_time=when,
        )

        async with self._locks[record.user_id]:
            await asyncio.to_thread(self._append_sync, record)

        return record

    def _append_sync(self, record: AvailabilityRecord):
        try:
            collection = self.load(record.user_id)
        except CorruptRecordError as e:
            # Don't let one bad file lock the user out; the new write replaces it
            logger.warning(f"Replacing unreadable file for user {record.user_id}: {e}")
            collection = UserAvailabilityCollection(record.user_id, self.max_per_user)

        evicted = collection.add(record)
        for old in evicted:
            logger.debug(f"Evicted record at {old.timestamp} for user {record.user_id}")

        self._write(collection)
        logger.info(
            f"Stored {record.intent.value} at {record.timestamp} for user {record.user_id} "
            f"({len(collection)}/{self.max_per_user})"
        )

    def _write(self, collection: UserAvailabilityCollection):
        path = self.path_for(collection.user_id)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{collection.user_id}.", suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(collection.to_json(), f)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageWriteError(f"Could not write {path}: {e}", path) from e

    def load(self, user_id: str) -> UserAvailabilityCollection:
        """
        Load a user's full collection, in append order.

        Returns an empty collection when the user has no file.

        Raises:
            CorruptRecordError: if the file can't be read or decoded
        """
        path = self.path_for(user_id)
        if not path.exists():
            return UserAvailabilityCollection(str(user_id), self.max_per_user)
        return self._read(path, str(user_id))

    def _read(self, path: Path, user_id: str) -> UserAvailabilityCollection:
        try:
            with open(path) as f:
                data = json.load(f)
            return UserAvailabilityCollection.from_json(user_id, data, self.max_per_user)
        except OSError as e:
            raise CorruptRecordError(f"Could not read {path}: {e}", path) from e
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            raise CorruptRecordError(f"Malformed {path}: {e}", path) from e

    def is_subscribed(self, user_id: str) -> bool:
        """A user is subscribed once they have at least one record."""
        try:
            return bool(self.load(user_id))
        except CorruptRecordError as e:
            logger.warning(f"Treating user {user_id} as unsubscribed: {e}")
            return False

    def scan(self) -> ScanResult:
        """
        Read every user file, keeping the latest record of each.

        Unreadable files are skipped and reported, never fatal.
        """
        result = ScanResult()
        if not self.directory.is_dir():
            return result

        for path in sorted(self.directory.glob("*.json")):
            if not path.is_file():
                continue
            try:
                collection = self._read(path, path.stem)
            except CorruptRecordError as e:
                logger.warning(f"Skipping {path.name}: {e}")
                result.skipped[path] = str(e)
                continue
            if collection:
                result.records.append(collection.latest())

        return result

    def list_all(self, order: Optional[SortOrder] = None) -> List[AvailabilityRecord]:
        """Latest record of every user, optionally sorted by time."""
        records = self.scan().records
        if order is not None:
            records.sort(key=lambda r: r.availability_time, reverse=(order is SortOrder.DESC))
        return records

    def history(self, user_id: str, order: SortOrder = SortOrder.ASC) -> UserAvailabilityCollection:
        """A user's collection sorted by time. Sorting is not persisted."""
        collection = self.load(user_id)
        collection.sort(order)
        return collection
