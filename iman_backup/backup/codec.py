"""Conversion between live store rows and snapshot records."""

import json
from datetime import datetime
from typing import Any, Optional, Tuple, Union

from pydantic import ValidationError

from .._utils import to_iso
from ..base import StoreRow
from ..exceptions import RecordError
from ..schemas import UserPayload, is_user_payload
from .models import UserRecord


def encode_payload(value: Any) -> str:
    """Canonical text form of a user document.

    Text is passed through untouched so a snapshot holds exactly what the
    store returned. Structured values (drivers that decode JSONB themselves)
    are encoded compactly, the way the app server writes them.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def decode_payload(value: Any) -> Any:
    """Decode a document that may be JSON text or already structured.

    Raises:
        ValueError: text that isn't valid JSON (json.JSONDecodeError)
        TypeError: a value that is neither text nor a JSON container
    """
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    if isinstance(value, (dict, list)):
        return value
    raise TypeError(f"unsupported payload type {type(value).__name__}")


def parse_payload(value: Any) -> UserPayload:
    """Decode a document and require a JSON object at the top.

    Raises:
        ValueError: not JSON, or JSON that isn't an object
        TypeError: unsupported value type
    """
    data = decode_payload(value)
    if not is_user_payload(data):
        raise ValueError(f"payload is a JSON {type(data).__name__}, expected an object")
    return data


def normalize_updated_at(value: Any) -> Optional[Union[int, str]]:
    """Keep the store's update marker as-is where JSON can carry it."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else str(value)
    if isinstance(value, datetime):
        return to_iso(value)
    return str(value)


def row_to_record(row: StoreRow) -> UserRecord:
    return UserRecord(
        telegram_id=row["telegram_id"],
        data=encode_payload(row["data"]),
        updated_at=normalize_updated_at(row.get("updated_at")),
    )


def record_from_raw(raw: Any) -> UserRecord:
    """Validate one snapshot entry read back from disk.

    Ids must be real integers (or digit strings, which older exports wrote);
    the payload must be JSON text that decodes.

    Raises:
        RecordError: the entry can't be restored
    """
    if isinstance(raw, UserRecord):
        record = raw
    else:
        if not isinstance(raw, dict):
            raise RecordError(None, f"entry is a {type(raw).__name__}, expected an object")
        record_id = raw.get("telegram_id")
        if isinstance(record_id, bool) or not isinstance(record_id, (int, str)):
            raise RecordError(record_id, f"malformed telegram_id {record_id!r}")
        if isinstance(record_id, str) and not record_id.strip().lstrip("-").isdigit():
            raise RecordError(record_id, f"malformed telegram_id {record_id!r}")
        if "data" not in raw:
            raise RecordError(record_id, "missing data")

        try:
            record = UserRecord(
                telegram_id=int(record_id),
                data=encode_payload(raw["data"]),
                updated_at=normalize_updated_at(raw.get("updated_at")),
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise RecordError(record_id, e) from e

    try:
        decode_payload(record.data)
    except (TypeError, ValueError) as e:
        raise RecordError(record.telegram_id, f"data is not valid JSON: {e}") from e
    return record


def record_to_row(record: UserRecord) -> Tuple[int, str, Optional[Union[int, str]]]:
    return record.telegram_id, record.data, record.updated_at
