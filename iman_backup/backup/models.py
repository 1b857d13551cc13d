"""Data models for backup/restore operations."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """One row of the users table as it appears in a snapshot."""

    telegram_id: int = Field(..., description="Telegram user id, unique in the live store")
    data: str = Field(..., description="User document as canonical JSON text")
    updated_at: Optional[Union[int, str]] = Field(None, description="Live store update marker, passed through unchanged")


class Snapshot(BaseModel):
    """Point-in-time export of the users table."""

    timestamp: int = Field(..., description="Creation time, epoch milliseconds")
    date: str = Field(..., description="Creation time, ISO-8601 UTC")
    total_users: int = Field(..., description="Row count at capture time, informational")
    users: List[UserRecord] = Field(default_factory=list)


class SnapshotFile(BaseModel):
    """Snapshot read back from an artifact.

    Records stay raw here so that one bad entry can't reject the whole file;
    the restore engine validates them one at a time.
    """

    timestamp: Optional[int] = None
    date: Optional[str] = None
    total_users: Optional[int] = None
    users: List[Any]


class SnapshotStatistics(BaseModel):
    """Operator summary printed after a backup."""

    total_users: int
    total_points: Union[int, float]
    top_level: str
    levels: Dict[str, int]


class BackupMetadata(BaseModel):
    """Backup metadata for listings and run reports."""

    name: str
    created_at: datetime
    total_users: int
    size_bytes: int
    checksum: str
    statistics: Optional[SnapshotStatistics] = None


class IssueReason(str, Enum):
    MISSING_REQUIRED_FIELD = "missing-required-field"
    WRONG_FIELD_TYPE = "wrong-field-type"
    MALFORMED_PAYLOAD = "malformed-payload"


class IntegrityIssue(BaseModel):
    record_id: int
    reason: IssueReason
    message: str


class IntegrityReport(BaseModel):
    valid_count: int = 0
    invalid_count: int = 0
    issues: List[IntegrityIssue] = Field(default_factory=list)


class RecordFailure(BaseModel):
    record_id: Optional[Union[int, str]] = None
    cause: str


class RestoreResult(BaseModel):
    found: bool = True
    source: Optional[str] = None
    restored_count: int = 0
    error_count: int = 0
    errors: List[RecordFailure] = Field(default_factory=list)


class RegistryEntry(BaseModel):
    telegram_id: int
    name: str
    city: str
    level: str
    total_points: int
    streak: int
    joined_at: Optional[str] = None
    last_updated: str


class Registry(BaseModel):
    """Denormalized user summary, recomputed from scratch on every rebuild."""

    last_updated: str
    total_users: int
    skipped: int = 0
    users: List[RegistryEntry] = Field(default_factory=list)


class HealthReport(BaseModel):
    """Result of the storage health check."""

    store_backend: str
    artifact_backend: str
    latest_backup_at: Optional[str] = None
    details: Dict[str, str] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues
