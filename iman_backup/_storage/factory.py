"""Storage factory for centralized backend creation."""

from typing import Type, Dict, Callable

from ..base import BaseUserStore, BaseArtifactStore
from ..config import StoreConfig, ArtifactConfig


class StorageFactory:
    """Factory for creating storage backends with validation and registration."""

    _store_backends: Dict[str, Callable[[], Type[BaseUserStore]]] = {}
    _artifact_backends: Dict[str, Callable[[], Type[BaseArtifactStore]]] = {}

    ALLOWED_STORE = {"postgres", "sqlite"}
    ALLOWED_ARTIFACT = {"local", "s3"}

    @classmethod
    def register_store(cls, name: str, backend_loader: Callable[[], Type[BaseUserStore]]) -> None:
        """Register a live store backend.

        Args:
            name: Backend name (must be in ALLOWED_STORE)
            backend_loader: Function that returns the store class

        Raises:
            ValueError: If backend name not in allowed list
        """
        if name not in cls.ALLOWED_STORE:
            raise ValueError(f"Backend {name} not in allowed store backends: {cls.ALLOWED_STORE}")
        cls._store_backends[name] = backend_loader

    @classmethod
    def register_artifact(cls, name: str, backend_loader: Callable[[], Type[BaseArtifactStore]]) -> None:
        """Register an artifact store backend.

        Args:
            name: Backend name (must be in ALLOWED_ARTIFACT)
            backend_loader: Function that returns the artifact store class

        Raises:
            ValueError: If backend name not in allowed list
        """
        if name not in cls.ALLOWED_ARTIFACT:
            raise ValueError(f"Backend {name} not in allowed artifact backends: {cls.ALLOWED_ARTIFACT}")
        cls._artifact_backends[name] = backend_loader

    @classmethod
    def create_store(cls, config: StoreConfig) -> BaseUserStore:
        """Create a live store instance. Nothing connects until first use.

        Raises:
            ValueError: If backend not registered
        """
        if config.backend not in cls._store_backends:
            _register_backends()
            if config.backend not in cls._store_backends:
                raise ValueError(f"Unknown store backend: {config.backend}. Available: {list(cls._store_backends.keys())}")

        backend_class = cls._store_backends[config.backend]()
        return backend_class(config=config)

    @classmethod
    def create_artifact_store(cls, config: ArtifactConfig) -> BaseArtifactStore:
        """Create an artifact store instance.

        Raises:
            ValueError: If backend not registered
        """
        if config.backend not in cls._artifact_backends:
            _register_backends()
            if config.backend not in cls._artifact_backends:
                raise ValueError(f"Unknown artifact backend: {config.backend}. Available: {list(cls._artifact_backends.keys())}")

        backend_class = cls._artifact_backends[config.backend]()
        return backend_class(config=config)


def _get_postgres_store():
    """Lazy loader for the Postgres store."""
    from .store_postgres import PostgresUserStore
    return PostgresUserStore


def _get_sqlite_store():
    """Lazy loader for the SQLite store."""
    from .store_sqlite import SQLiteUserStore
    return SQLiteUserStore


def _get_local_artifacts():
    """Lazy loader for local artifact storage."""
    from .artifact_local import LocalArtifactStore
    return LocalArtifactStore


def _get_s3_artifacts():
    """Lazy loader for S3 artifact storage."""
    from .artifact_s3 import S3ArtifactStore
    return S3ArtifactStore


def _register_backends():
    """Register built-in backends with lazy loaders. Called when factory is first used."""
    if not StorageFactory._store_backends:
        StorageFactory.register_store("postgres", _get_postgres_store)
        StorageFactory.register_store("sqlite", _get_sqlite_store)

    if not StorageFactory._artifact_backends:
        StorageFactory.register_artifact("local", _get_local_artifacts)
        StorageFactory.register_artifact("s3", _get_s3_artifacts)
