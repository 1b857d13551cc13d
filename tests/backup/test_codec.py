"""Tests for row <-> snapshot record conversion."""

import pytest
from datetime import datetime, timezone

from iman_backup.backup.codec import (
    decode_payload,
    encode_payload,
    normalize_updated_at,
    parse_payload,
    record_from_raw,
    record_to_row,
    row_to_record,
)
from iman_backup.backup.models import UserRecord
from iman_backup.exceptions import RecordError


def test_encode_text_passes_through():
    text = '{"b": 1,   "a": "Аноним"}'
    assert encode_payload(text) == text


def test_encode_structured_payload():
    # Drivers that hand back decoded JSONB get the app server's compact form
    assert encode_payload({"name": "Аноним", "totalPoints": 5}) == '{"name":"Аноним","totalPoints":5}'
    assert encode_payload(b'{"a":1}') == '{"a":1}'


def test_decode_payload():
    assert decode_payload('{"a": 1}') == {"a": 1}
    assert decode_payload({"a": 1}) == {"a": 1}
    assert decode_payload(b"[1]") == [1]

    with pytest.raises(ValueError):
        decode_payload("{broken")
    with pytest.raises(TypeError):
        decode_payload(42)


def test_parse_payload_requires_object():
    assert parse_payload('{"totalPoints": 1}') == {"totalPoints": 1}
    with pytest.raises(ValueError, match="expected an object"):
        parse_payload("[1, 2]")
    with pytest.raises(ValueError, match="expected an object"):
        parse_payload("null")


def test_normalize_updated_at():
    assert normalize_updated_at(None) is None
    assert normalize_updated_at(1700000000000) == 1700000000000
    assert normalize_updated_at("2025-01-15T03:00:00.000Z") == "2025-01-15T03:00:00.000Z"
    assert normalize_updated_at(1700000000000.0) == 1700000000000
    assert normalize_updated_at(datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc)) == "2025-01-15T03:00:00.000Z"


def test_row_to_record_and_back():
    row = {"telegram_id": 42, "data": '{"totalPoints":3}', "updated_at": 1700000000000}
    record = row_to_record(row)

    assert record == UserRecord(telegram_id=42, data='{"totalPoints":3}', updated_at=1700000000000)
    assert record_to_row(record) == (42, '{"totalPoints":3}', 1700000000000)


def test_record_from_raw_valid():
    record = record_from_raw({"telegram_id": 1, "data": "{}", "updated_at": "2025-01-15T03:00:00.000Z"})
    assert record.telegram_id == 1
    assert record.updated_at == "2025-01-15T03:00:00.000Z"

    # Digit strings written by older exports are accepted
    assert record_from_raw({"telegram_id": "77", "data": "{}"}).telegram_id == 77


@pytest.mark.parametrize("raw", [
    {"telegram_id": "abc", "data": "{}"},
    {"telegram_id": None, "data": "{}"},
    {"telegram_id": True, "data": "{}"},
    {"telegram_id": 1.5, "data": "{}"},
    {"telegram_id": 1},
    {"telegram_id": 1, "data": "{not json"},
    "not an object",
])
def test_record_from_raw_rejects(raw):
    with pytest.raises(RecordError):
        record_from_raw(raw)


def test_record_error_carries_id():
    with pytest.raises(RecordError) as exc_info:
        record_from_raw({"telegram_id": 9, "data": "{not json"})
    assert exc_info.value.record_id == 9
    assert "User 9" in str(exc_info.value)
