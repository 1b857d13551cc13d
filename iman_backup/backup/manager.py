"""Backup, restore, verify and registry orchestration for the users table."""

from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from typing import AsyncIterator, Callable, List, Optional, Tuple

from .._utils import compute_checksum, logger, utc_now
from .._storage import StorageFactory
from ..base import BaseArtifactStore, BaseUserStore
from ..config import BackupConfig
from ..exceptions import ArtifactReadError, SnapshotFormatError
from .integrity import IntegrityScanner
from .models import BackupMetadata, HealthReport, IntegrityReport, Registry, RestoreResult
from .registry import RegistryProjector
from .restore import RestoreEngine
from .snapshot import SnapshotWriter
from .utils import load_snapshot


LOCK_NAME = "iman-backup"


def _parse_snapshot_date(value: Optional[str], fallback: date) -> datetime:
    if value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime(fallback.year, fallback.month, fallback.day)


class BackupManager:
    """Run one operation at a time against a freshly opened live store.

    Each public method opens its own store, takes the run lock, does its pass
    and closes the store again, whether the pass succeeded or not. Nothing is
    shared between calls.
    """

    def __init__(
        self,
        config: BackupConfig,
        store_factory: Optional[Callable[[], BaseUserStore]] = None,
        artifacts: Optional[BaseArtifactStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize backup manager.

        Args:
            config: Store and artifact configuration
            store_factory: Builds a new live store per run; defaults to StorageFactory
            artifacts: Artifact store; defaults to the one named in config
            clock: Source of the current UTC time
        """
        self.config = config
        self.store_factory = store_factory or (lambda: StorageFactory.create_store(config.store))
        self.artifacts = artifacts or StorageFactory.create_artifact_store(config.artifacts)
        self.clock = clock

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[BaseUserStore]:
        store = self.store_factory()
        try:
            async with store.exclusive(LOCK_NAME):
                logger.info(f"Starting {operation} ({store.backend_name} -> {self.artifacts.backend_name})")
                await store.ensure_schema()
                yield store
        finally:
            await store.close()

    async def create_backup(self) -> BackupMetadata:
        """Export the users table as the latest and the dated snapshot.

        Returns:
            BackupMetadata with size, checksum and statistics
        """
        async with self._session("backup") as store:
            writer = SnapshotWriter(store, self.artifacts, clock=self.clock)
            snapshot = await writer.capture()
            metadata = await writer.write(snapshot)

        logger.info(f"Backup complete: {metadata.total_users} users ({metadata.size_bytes:,} bytes, {metadata.checksum})")
        return metadata

    async def restore_backup(self, day: Optional[date] = None) -> RestoreResult:
        """Restore from the latest snapshot, or from the snapshot of a given day.

        A missing snapshot is not an error: the result has found=False.
        """
        async with self._session("restore") as store:
            engine = RestoreEngine(store, self.artifacts)
            name, snapshot = await engine.load_latest(day)
            if snapshot is None:
                logger.warning(f"No backup found: {name}")
                return RestoreResult(found=False, source=name)

            result = await engine.restore_from_snapshot(snapshot)
            result.source = name
            return result

    async def verify(self) -> IntegrityReport:
        async with self._session("verify") as store:
            return await IntegrityScanner(store).verify_integrity()

    async def rebuild_registry(self) -> Registry:
        async with self._session("registry") as store:
            return await RegistryProjector(store, self.artifacts, clock=self.clock).rebuild_registry()

    async def auto(self) -> Tuple[BackupMetadata, IntegrityReport]:
        """Scheduled mode: backup, then verify, under a single lock."""
        async with self._session("auto") as store:
            writer = SnapshotWriter(store, self.artifacts, clock=self.clock)
            metadata = await writer.write(await writer.capture())
            report = await IntegrityScanner(store).verify_integrity()
        return metadata, report

    async def list_backups(self) -> List[BackupMetadata]:
        """List dated snapshots, newest first.

        Artifacts that can't be read as snapshots are logged and left out.
        """
        backups = []
        for day in await self.artifacts.list_dated():
            name = self.artifacts.dated_name(day)
            try:
                data = await self.artifacts.read_dated(day)
                if data is None:
                    continue
                snapshot = load_snapshot(data, name)
            except (ArtifactReadError, SnapshotFormatError) as e:
                logger.warning(f"Failed to read backup {name}: {e}")
                continue

            backups.append(BackupMetadata(
                name=name,
                created_at=_parse_snapshot_date(snapshot.date, day),
                total_users=snapshot.total_users if snapshot.total_users is not None else len(snapshot.users),
                size_bytes=len(data),
                checksum=compute_checksum(data),
            ))
        return backups

    async def check_health(self) -> HealthReport:
        """Check the live store, the artifact location and backup freshness."""
        store = self.store_factory()
        report = HealthReport(store_backend=store.backend_name, artifact_backend=self.artifacts.backend_name)
        try:
            store_health = await store.health()
        finally:
            await store.close()

        for part in (store_health, await self.artifacts.health()):
            report.details.update(part.get("details", {}))
            report.warnings.extend(part.get("warnings", []))
            report.issues.extend(part.get("issues", []))

        size_mb = store_health.get("size_mb")
        if size_mb is not None and size_mb > self.config.sqlite_size_warning_mb:
            report.warnings.append(
                f"Database size is {size_mb:.2f} MB (warning threshold {self.config.sqlite_size_warning_mb:.0f} MB)"
            )

        try:
            data = await self.artifacts.read_latest()
        except ArtifactReadError as e:
            report.issues.append(str(e))
            return report
        if data is None:
            report.warnings.append("No backup has been written yet")
            return report
        try:
            snapshot = load_snapshot(data, self.artifacts.config.latest_name)
        except SnapshotFormatError as e:
            report.issues.append(str(e))
            return report

        report.latest_backup_at = snapshot.date
        if snapshot.date:
            created_at = _parse_snapshot_date(snapshot.date, self.clock().date())
            if created_at.tzinfo is not None:
                age = self.clock() - created_at
                if age > timedelta(hours=self.config.stale_backup_hours):
                    report.warnings.append(
                        f"Latest backup is {age.total_seconds() / 3600:.1f} hours old"
                    )
        return report
