"""Configuration management for iman-backup."""

import os
import re
from dataclasses import dataclass, field
from typing import Optional


_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class StoreConfig:
    """Live store configuration."""
    backend: str = "sqlite"  # sqlite, postgres
    database_url: Optional[str] = None
    sqlite_path: str = "./data/iman.db"
    table: str = "users"

    # Postgres pool settings
    ssl: bool = False
    min_pool_size: int = 1
    max_pool_size: int = 4
    connect_timeout: float = 10.0

    # Key for pg_try_advisory_lock; shared by every operation
    lock_key: int = 7_261_001

    @classmethod
    def from_env(cls) -> 'StoreConfig':
        """Create config from environment variables."""
        database_url = os.getenv("DATABASE_URL")
        # SSL is on by default in production, like the app server
        ssl_default = "true" if os.getenv("NODE_ENV") == "production" else "false"
        return cls(
            backend=os.getenv("IMAN_STORE_BACKEND", "postgres" if database_url else "sqlite"),
            database_url=database_url,
            sqlite_path=os.getenv("IMAN_SQLITE_PATH", "./data/iman.db"),
            table=os.getenv("IMAN_USERS_TABLE", "users"),
            ssl=os.getenv("IMAN_PG_SSL", ssl_default).lower() == "true",
            min_pool_size=int(os.getenv("IMAN_PG_MIN_POOL", "1")),
            max_pool_size=int(os.getenv("IMAN_PG_MAX_POOL", "4")),
            connect_timeout=float(os.getenv("IMAN_PG_TIMEOUT", "10.0")),
            lock_key=int(os.getenv("IMAN_LOCK_KEY", "7261001")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.backend not in {"postgres", "sqlite"}:
            raise ValueError(f"Unknown store backend: {self.backend}")
        if self.backend == "postgres" and not self.database_url:
            raise ValueError("database_url is required for the postgres backend")
        if not _TABLE_NAME_RE.match(self.table):
            raise ValueError(f"Invalid table name: {self.table!r}")
        if self.min_pool_size <= 0:
            raise ValueError(f"min_pool_size must be positive, got {self.min_pool_size}")
        if self.max_pool_size < self.min_pool_size:
            raise ValueError(
                f"max_pool_size ({self.max_pool_size}) must be >= min_pool_size ({self.min_pool_size})"
            )
        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be positive, got {self.connect_timeout}")


@dataclass(frozen=True)
class ArtifactConfig:
    """Where snapshots and the registry are written."""
    backend: str = "local"  # local, s3
    backup_dir: str = "./backups"
    latest_name: str = "latest.json"
    registry_name: str = "registry.json"
    dated_prefix: str = "backup-"

    # S3 specific settings
    s3_bucket: Optional[str] = None
    s3_prefix: str = "iman-backups/"
    s3_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'ArtifactConfig':
        """Create config from environment variables."""
        return cls(
            backend=os.getenv("IMAN_ARTIFACT_BACKEND", "local"),
            backup_dir=os.getenv("IMAN_BACKUP_DIR", "./backups"),
            s3_bucket=os.getenv("IMAN_S3_BUCKET"),
            s3_prefix=os.getenv("IMAN_S3_PREFIX", "iman-backups/"),
            s3_region=os.getenv("IMAN_S3_REGION"),
            s3_endpoint_url=os.getenv("IMAN_S3_ENDPOINT_URL"),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.backend not in {"local", "s3"}:
            raise ValueError(f"Unknown artifact backend: {self.backend}")
        if self.backend == "s3" and not self.s3_bucket:
            raise ValueError("s3_bucket is required for the s3 artifact backend")
        if self.latest_name == self.registry_name:
            raise ValueError("latest_name and registry_name must differ")


@dataclass(frozen=True)
class BackupConfig:
    """Top-level configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    artifacts: ArtifactConfig = field(default_factory=ArtifactConfig)

    # Health check thresholds
    sqlite_size_warning_mb: float = 900.0
    stale_backup_hours: float = 12.0

    @classmethod
    def from_env(cls) -> 'BackupConfig':
        """Create complete config from environment."""
        return cls(
            store=StoreConfig.from_env(),
            artifacts=ArtifactConfig.from_env(),
            sqlite_size_warning_mb=float(os.getenv("IMAN_SQLITE_SIZE_WARNING_MB", "900")),
            stale_backup_hours=float(os.getenv("IMAN_STALE_BACKUP_HOURS", "12")),
        )

    def to_dict(self) -> dict:
        """Flat view for logging; never includes the database URL."""
        return {
            "store_backend": self.store.backend,
            "table": self.store.table,
            "sqlite_path": self.store.sqlite_path if self.store.backend == "sqlite" else None,
            "artifact_backend": self.artifacts.backend,
            "backup_dir": self.artifacts.backup_dir if self.artifacts.backend == "local" else None,
            "s3_bucket": self.artifacts.s3_bucket,
        }
