"""Tests for the integrity scanner."""

import pytest
from unittest.mock import AsyncMock

from iman_backup.backup.integrity import IntegrityScanner, classify_record
from iman_backup.backup.models import IssueReason
from iman_backup.exceptions import StoreConnectionError
from tests.conftest import seed_users


def test_string_points_is_wrong_type():
    issue = classify_record(1, '{"totalPoints": "5"}')
    assert issue.reason == IssueReason.WRONG_FIELD_TYPE
    assert issue.record_id == 1


def test_empty_document_is_missing_field():
    issue = classify_record(2, "{}")
    assert issue.reason == IssueReason.MISSING_REQUIRED_FIELD


def test_numeric_points_is_valid():
    assert classify_record(3, '{"totalPoints": 5}') is None
    assert classify_record(3, '{"totalPoints": 2.5}') is None
    assert classify_record(3, {"totalPoints": 0}) is None


@pytest.mark.parametrize("data", ["{broken", "[1, 2]", "42", b"\xff"])
def test_undecodable_is_malformed(data):
    issue = classify_record(4, data)
    assert issue.reason == IssueReason.MALFORMED_PAYLOAD


@pytest.mark.parametrize("value", [True, None, [5], {"n": 5}])
def test_non_numeric_values(value):
    import json
    issue = classify_record(5, json.dumps({"totalPoints": value}))
    assert issue.reason == IssueReason.WRONG_FIELD_TYPE


def test_only_top_level_points_is_checked():
    # Points nested in the profile don't satisfy the contract
    issue = classify_record(6, '{"iman_profile": {"totalPoints": 5}}')
    assert issue.reason == IssueReason.MISSING_REQUIRED_FIELD
    # Other fields aren't validated at all
    assert classify_record(6, '{"totalPoints": 5, "level": 12, "streak": "x"}') is None


@pytest.mark.asyncio
async def test_verify_integrity_counts(sqlite_store):
    await seed_users(sqlite_store, [
        (1, '{"totalPoints": 5}', 1),
        (2, '{"totalPoints": "5"}', 1),
        (3, "{}", 1),
        (4, "{broken", 1),
        (5, '{"totalPoints": 0, "level": "Талиб"}', 1),
    ])

    report = await IntegrityScanner(sqlite_store).verify_integrity()

    assert report.valid_count == 2
    assert report.invalid_count == 3
    assert [(i.record_id, i.reason) for i in report.issues] == [
        (2, IssueReason.WRONG_FIELD_TYPE),
        (3, IssueReason.MISSING_REQUIRED_FIELD),
        (4, IssueReason.MALFORMED_PAYLOAD),
    ]
    assert all(f"User {i.record_id}" in i.message for i in report.issues)


@pytest.mark.asyncio
async def test_verify_is_read_only(sqlite_store):
    await seed_users(sqlite_store, [(1, "{}", 1), (2, "{broken", 2)])
    before = await sqlite_store.scan()

    await IntegrityScanner(sqlite_store).verify_integrity()
    assert await sqlite_store.scan() == before


@pytest.mark.asyncio
async def test_scan_failure_aborts():
    store = AsyncMock()
    store.scan.side_effect = StoreConnectionError("postgres", "timeout")

    with pytest.raises(StoreConnectionError):
        await IntegrityScanner(store).verify_integrity()
