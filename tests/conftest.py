"""Global pytest configuration and fixtures."""

import json
import pytest
import pytest_asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from iman_backup.config import ArtifactConfig, BackupConfig, StoreConfig
from iman_backup._storage.artifact_local import LocalArtifactStore
from iman_backup._storage.store_sqlite import SQLiteUserStore


FIXED_NOW = datetime(2025, 1, 15, 3, 0, 0, 123000, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def user_doc(**fields) -> str:
    """User document as the app server writes it."""
    return json.dumps(fields, ensure_ascii=False, separators=(",", ":"))


async def seed_users(store, users):
    """Insert (telegram_id, data, updated_at) tuples into a store."""
    for telegram_id, data, updated_at in users:
        await store.upsert(telegram_id, data, updated_at)


@pytest.fixture
def sqlite_config(tmp_path) -> StoreConfig:
    return StoreConfig(backend="sqlite", sqlite_path=str(tmp_path / "data" / "iman.db"))


@pytest.fixture
def artifact_config(tmp_path) -> ArtifactConfig:
    return ArtifactConfig(backend="local", backup_dir=str(tmp_path / "backups"))


@pytest.fixture
def backup_config(sqlite_config, artifact_config) -> BackupConfig:
    return BackupConfig(store=sqlite_config, artifacts=artifact_config)


@pytest_asyncio.fixture
async def sqlite_store(sqlite_config):
    """SQLite store with the users table created."""
    store = SQLiteUserStore(config=sqlite_config)
    await store.ensure_schema()
    yield store
    await store.close()


@pytest.fixture
def artifacts(artifact_config) -> LocalArtifactStore:
    return LocalArtifactStore(config=artifact_config)
