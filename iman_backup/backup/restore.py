"""Replay a snapshot into the live store, one upsert per record."""

from datetime import date
from typing import Any, Optional, Tuple, Union

from .._utils import logger
from ..base import BaseArtifactStore, BaseUserStore
from ..exceptions import RecordError
from .codec import record_from_raw, record_to_row
from .models import RecordFailure, RestoreResult, Snapshot, SnapshotFile
from .utils import load_snapshot


def _display_id(value: Any) -> Optional[Union[int, str]]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return repr(value)


class RestoreEngine:
    """Apply snapshots with per-record failure isolation.

    Every record is an independent upsert, so the snapshot always wins over
    the current row for the same id and running a restore twice leaves the
    store exactly as running it once. A rejected record is logged, counted
    and skipped; only a store failure stops the batch.
    """

    def __init__(self, store: BaseUserStore, artifacts: Optional[BaseArtifactStore] = None):
        self.store = store
        self.artifacts = artifacts

    async def load_latest(self, day: Optional[date] = None) -> Tuple[Optional[str], Optional[SnapshotFile]]:
        """Read the latest snapshot, or the dated one for day.

        Returns:
            (artifact name, snapshot), or (name, None) when it doesn't exist

        Raises:
            SnapshotFormatError: The artifact exists but isn't a snapshot
            ArtifactReadError: The artifact couldn't be read
        """
        if self.artifacts is None:
            raise ValueError("RestoreEngine needs an artifact store to load snapshots")

        if day is None:
            name = self.artifacts.config.latest_name
            data = await self.artifacts.read_latest()
        else:
            name = self.artifacts.dated_name(day)
            data = await self.artifacts.read_dated(day)

        if data is None:
            return name, None
        return name, load_snapshot(data, name)

    async def restore_from_snapshot(self, snapshot: Union[Snapshot, SnapshotFile]) -> RestoreResult:
        """Upsert every record of the snapshot in order.

        Raises:
            StoreConnectionError: The store failed; records before it are applied
        """
        result = RestoreResult()
        if snapshot.date:
            logger.info(f"Restoring snapshot from {snapshot.date} ({snapshot.total_users} users)")

        for position, raw in enumerate(snapshot.users, start=1):
            try:
                record = record_from_raw(raw)
                await self.store.upsert(*record_to_row(record))
            except RecordError as e:
                result.error_count += 1
                result.errors.append(RecordFailure(record_id=_display_id(e.record_id), cause=str(e.cause)))
                logger.error(f"Failed to restore entry #{position} (user {e.record_id}): {e.cause}")
                continue
            result.restored_count += 1

        logger.info(f"Restore complete: {result.restored_count} restored, {result.error_count} errors")
        return result
