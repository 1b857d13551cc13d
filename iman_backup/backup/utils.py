"""Utility functions for backup/restore operations."""

import json
from typing import Any, Dict

from pydantic import BaseModel, ValidationError

from .._utils import logger
from ..exceptions import SnapshotFormatError
from .models import Registry, SnapshotFile


def dump_artifact(model: BaseModel) -> bytes:
    """Serialize a snapshot or registry to the bytes written to storage.

    Args:
        model: Snapshot or Registry

    Returns:
        Pretty-printed UTF-8 JSON
    """
    payload = model.model_dump(mode="json")
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def _load_json(data: bytes, what: str) -> Dict[str, Any]:
    try:
        document = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SnapshotFormatError(f"{what} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise SnapshotFormatError(f"{what} must be a JSON object, got {type(document).__name__}")
    return document


def load_snapshot(data: bytes, name: str = "snapshot") -> SnapshotFile:
    """Parse snapshot bytes without validating individual records.

    Args:
        data: Artifact contents
        name: Artifact name for error messages

    Returns:
        SnapshotFile with raw user entries

    Raises:
        SnapshotFormatError: Not a snapshot document
    """
    document = _load_json(data, name)
    try:
        snapshot = SnapshotFile.model_validate(document)
    except ValidationError as e:
        raise SnapshotFormatError(f"{name} is not a snapshot: {e}") from e

    logger.debug(f"Snapshot loaded: {name} ({len(snapshot.users)} entries)")
    return snapshot


def load_registry(data: bytes, name: str = "registry") -> Registry:
    document = _load_json(data, name)
    try:
        return Registry.model_validate(document)
    except ValidationError as e:
        raise SnapshotFormatError(f"{name} is not a registry: {e}") from e
