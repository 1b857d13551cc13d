"""Tests for the restore engine."""

import json
import pytest
from unittest.mock import AsyncMock

from iman_backup.backup.models import Snapshot, UserRecord
from iman_backup.backup.restore import RestoreEngine
from iman_backup.backup.snapshot import SnapshotWriter
from iman_backup.backup.utils import load_snapshot
from iman_backup.config import StoreConfig
from iman_backup.exceptions import RecordError, SnapshotFormatError, StoreConnectionError
from iman_backup._storage.store_sqlite import SQLiteUserStore
from tests.conftest import fixed_clock, seed_users, user_doc


def make_snapshot(users):
    return load_snapshot(json.dumps({
        "timestamp": 1736910000123,
        "date": "2025-01-15T03:00:00.123Z",
        "total_users": len(users),
        "users": users,
    }).encode())


@pytest.mark.asyncio
async def test_restore_inserts_and_overwrites(sqlite_store):
    await sqlite_store.upsert(1, user_doc(totalPoints=999), 5)

    snapshot = make_snapshot([
        {"telegram_id": 1, "data": user_doc(totalPoints=10), "updated_at": 1},
        {"telegram_id": 2, "data": user_doc(totalPoints=20), "updated_at": 2},
    ])
    result = await RestoreEngine(sqlite_store).restore_from_snapshot(snapshot)

    assert result.restored_count == 2
    assert result.error_count == 0
    # The snapshot wins over the live row
    row = await sqlite_store.get(1)
    assert row["data"] == user_doc(totalPoints=10)
    assert row["updated_at"] == 1


@pytest.mark.asyncio
async def test_restore_is_idempotent(sqlite_store):
    snapshot = make_snapshot([
        {"telegram_id": i, "data": user_doc(totalPoints=i), "updated_at": 1000 + i}
        for i in range(1, 6)
    ])
    engine = RestoreEngine(sqlite_store)

    await engine.restore_from_snapshot(snapshot)
    once = await sqlite_store.scan()
    second = await engine.restore_from_snapshot(snapshot)

    assert second.restored_count == 5
    assert await sqlite_store.scan() == once


@pytest.mark.asyncio
async def test_bad_record_does_not_abort_batch(sqlite_store):
    users = [
        {"telegram_id": i, "data": user_doc(totalPoints=i), "updated_at": i}
        for i in range(1, 11)
    ]
    users[6]["telegram_id"] = "seven"

    result = await RestoreEngine(sqlite_store).restore_from_snapshot(make_snapshot(users))

    assert result.restored_count == 9
    assert result.error_count == 1
    assert result.errors[0].record_id == "seven"
    # Records after the bad one were processed
    assert [row["telegram_id"] for row in await sqlite_store.scan()] == [1, 2, 3, 4, 5, 6, 8, 9, 10]


@pytest.mark.asyncio
async def test_every_failure_kind_is_counted(sqlite_store):
    result = await RestoreEngine(sqlite_store).restore_from_snapshot(make_snapshot([
        {"telegram_id": 1, "data": "{broken"},
        {"telegram_id": 1.5, "data": "{}"},
        {"data": "{}"},
        "garbage",
        {"telegram_id": 2, "data": "{}", "updated_at": 1},
    ]))

    assert result.restored_count == 1
    assert result.error_count == 4
    assert [e.record_id for e in result.errors] == [1, "1.5", None, None]


@pytest.mark.asyncio
async def test_store_rejection_is_counted():
    store = AsyncMock()
    store.upsert.side_effect = [None, RecordError(2, "value too long"), None]
    snapshot = make_snapshot([{"telegram_id": i, "data": "{}"} for i in (1, 2, 3)])

    result = await RestoreEngine(store).restore_from_snapshot(snapshot)
    assert (result.restored_count, result.error_count) == (2, 1)
    assert result.errors[0].cause == "value too long"


@pytest.mark.asyncio
async def test_store_failure_stops_restore():
    store = AsyncMock()
    store.upsert.side_effect = [None, StoreConnectionError("postgres", "connection reset")]
    snapshot = make_snapshot([{"telegram_id": i, "data": "{}"} for i in (1, 2, 3)])

    with pytest.raises(StoreConnectionError):
        await RestoreEngine(store).restore_from_snapshot(snapshot)
    assert store.upsert.await_count == 2


@pytest.mark.asyncio
async def test_round_trip_into_empty_store(sqlite_store, artifacts, tmp_path):
    originals = [
        (1, '{"totalPoints": 5, "iman_profile": {"name": "Ali"}}', 1700000000001),
        (2, '{"totalPoints":0,"prayers":{"2025-01-14":["fajr"]}}', "2025-01-14T20:00:00.000Z"),
        (3, "{broken but still carried", None),
    ]
    await seed_users(sqlite_store, originals)
    await SnapshotWriter(sqlite_store, artifacts, clock=fixed_clock).create_snapshot()

    empty = SQLiteUserStore(config=StoreConfig(backend="sqlite", sqlite_path=str(tmp_path / "empty.db")))
    try:
        await empty.ensure_schema()
        engine = RestoreEngine(empty, artifacts)
        name, snapshot = await engine.load_latest()
        result = await engine.restore_from_snapshot(snapshot)

        assert name == "latest.json"
        # The undecodable document can't be restored
        assert (result.restored_count, result.error_count) == (2, 1)
        rows = await empty.scan()
        assert [(r["telegram_id"], r["data"], r["updated_at"]) for r in rows] == originals[:2]
    finally:
        await empty.close()


@pytest.mark.asyncio
async def test_restore_from_in_memory_snapshot(sqlite_store):
    snapshot = Snapshot(
        timestamp=1,
        date="2025-01-15T03:00:00.000Z",
        total_users=1,
        users=[UserRecord(telegram_id=8, data="{}", updated_at=1)],
    )
    result = await RestoreEngine(sqlite_store).restore_from_snapshot(snapshot)
    assert result.restored_count == 1


@pytest.mark.asyncio
async def test_load_latest_missing(sqlite_store, artifacts):
    name, snapshot = await RestoreEngine(sqlite_store, artifacts).load_latest()
    assert name == "latest.json"
    assert snapshot is None


@pytest.mark.asyncio
async def test_load_dated(sqlite_store, artifacts):
    day = fixed_clock().date()
    await artifacts.write_dated(day, json.dumps({"users": []}).encode())

    name, snapshot = await RestoreEngine(sqlite_store, artifacts).load_latest(day)
    assert name == "backup-2025-01-15.json"
    assert snapshot.users == []


@pytest.mark.asyncio
async def test_load_corrupt_snapshot(sqlite_store, artifacts):
    await artifacts.write_latest(b'{"users": [')
    with pytest.raises(SnapshotFormatError):
        await RestoreEngine(sqlite_store, artifacts).load_latest()
