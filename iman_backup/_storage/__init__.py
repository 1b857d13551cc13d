"""Storage module with lazy loading support."""

from typing import TYPE_CHECKING

# Always import factory and registration (lightweight)
from .factory import StorageFactory, _register_backends

# Type checking imports (no runtime cost)
if TYPE_CHECKING:
    from .store_postgres import PostgresUserStore
    from .store_sqlite import SQLiteUserStore
    from .artifact_local import LocalArtifactStore
    from .artifact_s3 import S3ArtifactStore


def __getattr__(name):
    """Lazy import backends so asyncpg and aioboto3 load only when used."""
    if name == "PostgresUserStore":
        from .store_postgres import PostgresUserStore
        return PostgresUserStore
    elif name == "SQLiteUserStore":
        from .store_sqlite import SQLiteUserStore
        return SQLiteUserStore
    elif name == "LocalArtifactStore":
        from .artifact_local import LocalArtifactStore
        return LocalArtifactStore
    elif name == "S3ArtifactStore":
        from .artifact_s3 import S3ArtifactStore
        return S3ArtifactStore
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "StorageFactory",
    "_register_backends",
    "PostgresUserStore",
    "SQLiteUserStore",
    "LocalArtifactStore",
    "S3ArtifactStore",
]
