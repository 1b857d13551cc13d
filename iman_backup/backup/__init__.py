"""Backup, restore, integrity and registry operations."""

from .manager import BackupManager
from .models import (
    BackupMetadata,
    HealthReport,
    IntegrityReport,
    Registry,
    RestoreResult,
    Snapshot,
)

__all__ = [
    "BackupManager",
    "BackupMetadata",
    "HealthReport",
    "IntegrityReport",
    "Registry",
    "RestoreResult",
    "Snapshot",
]
