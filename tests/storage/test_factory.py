"""Tests for the storage factory pattern."""

import pytest
from unittest.mock import Mock
from iman_backup._storage.factory import StorageFactory, _register_backends
from iman_backup.base import BaseArtifactStore, BaseUserStore
from iman_backup.config import ArtifactConfig, StoreConfig


class TestStorageFactory:
    """Test suite for StorageFactory."""

    def setup_method(self):
        """Reset factory state before each test."""
        StorageFactory._store_backends = {}
        StorageFactory._artifact_backends = {}

    def test_register_store_backend(self):
        """Verify store backend registration works."""
        mock_loader = Mock(return_value=Mock(spec=BaseUserStore))

        StorageFactory.register_store("sqlite", mock_loader)
        assert StorageFactory._store_backends["sqlite"] is mock_loader

    def test_register_store_backend_not_allowed(self):
        with pytest.raises(ValueError, match="Backend mysql not in allowed store backends"):
            StorageFactory.register_store("mysql", Mock())

    def test_register_artifact_backend_not_allowed(self):
        with pytest.raises(ValueError, match="Backend gcs not in allowed artifact backends"):
            StorageFactory.register_artifact("gcs", Mock())

    def test_register_backends_populates_builtins(self):
        _register_backends()
        assert set(StorageFactory._store_backends) == {"postgres", "sqlite"}
        assert set(StorageFactory._artifact_backends) == {"local", "s3"}

    def test_create_sqlite_store(self, tmp_path):
        """Factory registers built-ins on first use."""
        from iman_backup._storage.store_sqlite import SQLiteUserStore

        store = StorageFactory.create_store(StoreConfig(backend="sqlite", sqlite_path=str(tmp_path / "x.db")))
        assert isinstance(store, SQLiteUserStore)
        assert store.backend_name == "sqlite"
        # Nothing is opened until first use
        assert not (tmp_path / "x.db").exists()

    def test_create_postgres_store_is_lazy(self):
        from iman_backup._storage.store_postgres import PostgresUserStore

        store = StorageFactory.create_store(StoreConfig(backend="postgres", database_url="postgresql://localhost/iman"))
        assert isinstance(store, PostgresUserStore)
        assert store._pool is None

    def test_create_local_artifact_store(self, tmp_path):
        from iman_backup._storage.artifact_local import LocalArtifactStore

        artifacts = StorageFactory.create_artifact_store(ArtifactConfig(backup_dir=str(tmp_path)))
        assert isinstance(artifacts, LocalArtifactStore)
        assert artifacts.backend_name == "local"

    def test_create_s3_artifact_store(self):
        from iman_backup._storage.artifact_s3 import S3ArtifactStore

        artifacts = StorageFactory.create_artifact_store(ArtifactConfig(backend="s3", s3_bucket="iman"))
        assert isinstance(artifacts, S3ArtifactStore)
        assert artifacts.backend_name == "s3"

    def test_custom_loader_is_used(self):
        custom_class = Mock()
        StorageFactory.register_artifact("local", lambda: custom_class)

        config = ArtifactConfig()
        StorageFactory.create_artifact_store(config)
        custom_class.assert_called_once_with(config=config)

    def test_lazy_attribute_access(self):
        import iman_backup._storage as storage_module

        assert storage_module.SQLiteUserStore.__name__ == "SQLiteUserStore"
        with pytest.raises(AttributeError):
            storage_module.DoesNotExist

    def teardown_method(self):
        StorageFactory._store_backends = {}
        StorageFactory._artifact_backends = {}
