"""Exception hierarchy for backup, restore and verification runs."""

from typing import Any


class IManBackupError(Exception):
    """Base exception for run-level failures."""
    pass


class StoreConnectionError(IManBackupError):
    """Live store unreachable or a query against it failed."""

    def __init__(self, backend: str, cause: Any = None):
        self.backend = backend
        self.cause = cause
        message = f"{backend} store unavailable"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ArtifactWriteError(IManBackupError):
    def __init__(self, name: str, cause: Any = None):
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to write artifact {name}: {cause}")


class ArtifactReadError(IManBackupError):
    def __init__(self, name: str, cause: Any = None):
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to read artifact {name}: {cause}")


class SnapshotFormatError(IManBackupError):
    """Artifact exists but is not a readable snapshot."""
    pass


class ConcurrentRunError(IManBackupError):
    def __init__(self, lock_name: str):
        self.lock_name = lock_name
        super().__init__(f"Another run holds the lock {lock_name}")


class RecordError(IManBackupError):
    """Per-record failure. Always caught and counted, never aborts a batch."""

    def __init__(self, record_id: Any, cause: Any):
        self.record_id = record_id
        self.cause = cause
        super().__init__(f"User {record_id}: {cause}")
