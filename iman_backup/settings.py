"""Settings for the command-line entry point, loaded from env and .env."""

from pydantic_settings import BaseSettings
from pydantic import validator, Field
from typing import Optional

from .config import ArtifactConfig, BackupConfig, StoreConfig


class Settings(BaseSettings):
    # Live store
    database_url: Optional[str] = None
    iman_store_backend: Optional[str] = None
    iman_sqlite_path: str = "./data/iman.db"
    iman_users_table: str = "users"
    node_env: Optional[str] = None
    iman_pg_ssl: Optional[bool] = None  # defaults to on when NODE_ENV=production
    iman_pg_min_pool: int = 1
    iman_pg_max_pool: int = 4
    iman_pg_timeout: float = 10.0
    iman_lock_key: int = 7_261_001

    # Artifacts
    iman_artifact_backend: str = "local"
    iman_backup_dir: str = Field(default="./backups", description="Directory for snapshot and registry files")
    iman_s3_bucket: Optional[str] = None
    iman_s3_prefix: str = "iman-backups/"
    iman_s3_region: Optional[str] = None
    iman_s3_endpoint_url: Optional[str] = None

    # Health check thresholds
    iman_sqlite_size_warning_mb: float = 900.0
    iman_stale_backup_hours: float = 12.0

    iman_backup_log_level: str = "INFO"

    @validator('iman_store_backend', 'iman_artifact_backend', pre=True)
    def normalize_backend(cls, v):
        """Accept backend names in any case."""
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables

    def to_backup_config(self) -> BackupConfig:
        """Build the core config; postgres is chosen when DATABASE_URL is set."""
        backend = self.iman_store_backend or ("postgres" if self.database_url else "sqlite")
        return BackupConfig(
            store=StoreConfig(
                backend=backend,
                database_url=self.database_url,
                sqlite_path=self.iman_sqlite_path,
                table=self.iman_users_table,
                ssl=self.iman_pg_ssl if self.iman_pg_ssl is not None else self.node_env == "production",
                min_pool_size=self.iman_pg_min_pool,
                max_pool_size=self.iman_pg_max_pool,
                connect_timeout=self.iman_pg_timeout,
                lock_key=self.iman_lock_key,
            ),
            artifacts=ArtifactConfig(
                backend=self.iman_artifact_backend or "local",
                backup_dir=self.iman_backup_dir,
                s3_bucket=self.iman_s3_bucket,
                s3_prefix=self.iman_s3_prefix,
                s3_region=self.iman_s3_region,
                s3_endpoint_url=self.iman_s3_endpoint_url,
            ),
            sqlite_size_warning_mb=self.iman_sqlite_size_warning_mb,
            stale_backup_hours=self.iman_stale_backup_hours,
        )
