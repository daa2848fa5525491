"""
Tests for AvailabilityStore - per-user JSON files

Tests cover:
- File layout and persisted format
- Capacity across appends
- Listing and scanning, including unreadable files
- Subscription check
- Write failures and concurrent appends
"""

import asyncio
import json
import pytest
from datetime import timedelta

from discord_availability.errors import CorruptRecordError, StorageWriteError
from discord_availability.models import SortOrder
from discord_availability.store import AvailabilityStore

from conftest import NEXT_MONDAY, THIS_FRIDAY


def append(store, user_id="1001", user_name="pudge", is_available=True, when=NEXT_MONDAY):
    return asyncio.run(store.append(user_id, user_name, is_available, when))


class TestAppend:
    """Committing records to disk."""

    def test_creates_directory_and_file(self, store, availabilities_dir):
        assert not availabilities_dir.exists()

        record = append(store, when=NEXT_MONDAY.replace(hour=20))

        path = availabilities_dir / "1001.json"
        assert path.is_file()
        with open(path) as f:
            data = json.load(f)
        key = str(record.timestamp)
        assert list(data) == [key]
        assert data[key] == {
            "userId": "1001",
            "userName": "pudge",
            "userIsAvailable": True,
            "userAvailabilityTime": int(NEXT_MONDAY.replace(hour=20).timestamp()),
            "userIsAvailablePerDefault": False,
        }

    def test_no_temp_files_left(self, store, availabilities_dir):
        append(store)
        assert [p.name for p in availabilities_dir.iterdir()] == ["1001.json"]

    def test_cap_keeps_newest(self, store_factory):
        store = store_factory(max_per_user=3)
        for hour in range(5):
            append(store, when=NEXT_MONDAY + timedelta(hours=hour))

        collection = store.load("1001")

        assert len(collection) == 3
        assert [r.availability_time for r in collection] == [
            NEXT_MONDAY + timedelta(hours=h) for h in (2, 3, 4)
        ]

    def test_records_survive_new_store_instance(self, store, store_factory):
        append(store, when=THIS_FRIDAY)
        append(store, when=NEXT_MONDAY, is_available=False)

        reopened = store_factory()
        collection = reopened.load("1001")

        assert len(collection) == 2
        assert collection.latest().is_available is False

    def test_write_failure_raises(self, availabilities_dir):
        availabilities_dir.parent.mkdir(parents=True, exist_ok=True)
        availabilities_dir.write_text("not a directory")
        store = AvailabilityStore(availabilities_dir)

        with pytest.raises(StorageWriteError):
            append(store)

    def test_corrupt_file_replaced(self, store, availabilities_dir):
        availabilities_dir.mkdir()
        (availabilities_dir / "1001.json").write_text("{not json")

        append(store, when=THIS_FRIDAY)

        collection = store.load("1001")
        assert len(collection) == 1
        assert collection.latest().availability_time == THIS_FRIDAY

    def test_concurrent_appends_all_kept(self, store):
        async def commit_many():
            await asyncio.gather(*[
                store.append("1001", "pudge", True, NEXT_MONDAY + timedelta(hours=h))
                for h in range(10)
            ])

        asyncio.run(commit_many())

        assert len(store.load("1001")) == 10


class TestLoad:
    """Reading a single user's file."""

    def test_missing_file_is_empty(self, store):
        collection = store.load("9999")
        assert len(collection) == 0
        assert collection.user_id == "9999"

    def test_reads_single_record_file(self, store, availabilities_dir):
        availabilities_dir.mkdir()
        legacy = {
            "userId": "1001",
            "userName": "pudge",
            "userIsAvailable": False,
            "userAvailabilityTime": int(THIS_FRIDAY.timestamp()),
            "userIsAvailablePerDefault": False,
        }
        (availabilities_dir / "1001.json").write_text(json.dumps(legacy))

        collection = store.load("1001")

        assert len(collection) == 1
        assert collection.latest().is_available is False
        assert collection.latest().availability_time == THIS_FRIDAY

    def test_corrupt_file_raises(self, store, availabilities_dir):
        availabilities_dir.mkdir()
        (availabilities_dir / "1001.json").write_text("[]")

        with pytest.raises(CorruptRecordError) as exc_info:
            store.load("1001")
        assert exc_info.value.path == availabilities_dir / "1001.json"

    def test_history_sorted(self, store):
        append(store, when=NEXT_MONDAY)
        append(store, when=THIS_FRIDAY)

        ascending = store.history("1001")
        descending = store.history("1001", SortOrder.DESC)

        assert [r.availability_time for r in ascending] == [THIS_FRIDAY, NEXT_MONDAY]
        assert [r.availability_time for r in descending] == [NEXT_MONDAY, THIS_FRIDAY]

    def test_history_sort_not_persisted(self, store):
        append(store, when=NEXT_MONDAY)
        append(store, when=THIS_FRIDAY)

        store.history("1001")

        assert store.load("1001").latest().availability_time == THIS_FRIDAY


class TestListing:
    """Scanning the whole directory."""

    def test_empty_when_directory_missing(self, store):
        assert store.list_all() == []

    def test_latest_record_per_user(self, store):
        append(store, "1001", "pudge", True, NEXT_MONDAY)
        append(store, "1001", "pudge", False, THIS_FRIDAY)
        append(store, "2002", "lion", True, NEXT_MONDAY.replace(hour=21))

        records = store.list_all(SortOrder.ASC)

        assert [(r.user_id, r.availability_time) for r in records] == [
            ("1001", THIS_FRIDAY),
            ("2002", NEXT_MONDAY.replace(hour=21)),
        ]

    def test_descending(self, store):
        append(store, "1001", "pudge", True, THIS_FRIDAY)
        append(store, "2002", "lion", True, NEXT_MONDAY)

        assert [r.user_id for r in store.list_all(SortOrder.DESC)] == ["2002", "1001"]

    def test_corrupt_file_skipped(self, store, availabilities_dir):
        append(store, "1001", "pudge", True, THIS_FRIDAY)
        bad = availabilities_dir / "2002.json"
        bad.write_text("{\"userId\": ")

        result = store.scan()

        assert [r.user_id for r in result.records] == ["1001"]
        assert list(result.skipped) == [bad]

    def test_non_json_files_ignored(self, store, availabilities_dir):
        append(store, "1001", "pudge", True, THIS_FRIDAY)
        (availabilities_dir / "notes.txt").write_text("hello")

        result = store.scan()

        assert len(result.records) == 1
        assert result.skipped == {}


class TestSubscription:
    """A user is subscribed once they have a record."""

    def test_unknown_user(self, store):
        assert store.is_subscribed("1001") is False

    def test_after_append(self, store):
        append(store)
        assert store.is_subscribed("1001") is True
        assert store.is_subscribed("2002") is False

    def test_corrupt_file_not_subscribed(self, store, availabilities_dir):
        availabilities_dir.mkdir()
        (availabilities_dir / "1001.json").write_text("garbage")

        assert store.is_subscribed("1001") is False

    def test_invalid_capacity(self, availabilities_dir):
        with pytest.raises(ValueError):
            AvailabilityStore(availabilities_dir, max_per_user=0)
