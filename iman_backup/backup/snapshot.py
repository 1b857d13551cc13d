"""Full-table export into a latest + dated snapshot pair."""

from collections import Counter
from typing import Callable, Iterable
from datetime import datetime

from .._utils import compute_checksum, logger, to_epoch_ms, to_iso, utc_now
from ..base import BaseArtifactStore, BaseUserStore
from ..schemas import level_of, points_of
from .codec import parse_payload, row_to_record
from .models import BackupMetadata, Snapshot, SnapshotStatistics, UserRecord
from .utils import dump_artifact


def compute_statistics(records: Iterable[UserRecord]) -> SnapshotStatistics:
    """Totals for the operator summary. Undecodable documents count as users only."""
    total_users = 0
    total_points = 0
    levels: Counter = Counter()

    for record in records:
        total_users += 1
        try:
            payload = parse_payload(record.data)
        except (TypeError, ValueError):
            continue
        total_points += points_of(payload)
        levels[level_of(payload) or "Unknown"] += 1

    top_level = levels.most_common(1)[0][0] if levels else "Unknown"
    return SnapshotStatistics(
        total_users=total_users,
        total_points=total_points,
        top_level=top_level,
        levels=dict(levels),
    )


class SnapshotWriter:
    """Scan the live store and persist the result as two artifacts."""

    def __init__(
        self,
        store: BaseUserStore,
        artifacts: BaseArtifactStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.artifacts = artifacts
        self.clock = clock

    async def capture(self) -> Snapshot:
        """Read the whole table into an in-memory snapshot.

        Raises:
            StoreConnectionError: The scan failed; nothing has been written
        """
        rows = await self.store.scan()
        moment = self.clock()
        records = [row_to_record(row) for row in rows]
        return Snapshot(
            timestamp=to_epoch_ms(moment),
            date=to_iso(moment),
            total_users=len(records),
            users=records,
        )

    async def write(self, snapshot: Snapshot) -> BackupMetadata:
        """Persist a snapshot as the latest artifact and as the day's artifact.

        Both artifacts get identical bytes. The day is the UTC calendar date
        of the snapshot, so repeated runs on one day replace that day's file.

        Raises:
            ArtifactWriteError: Either write failed
        """
        data = dump_artifact(snapshot)
        created_at = datetime.fromisoformat(snapshot.date.replace("Z", "+00:00"))

        latest = await self.artifacts.write_latest(data)
        dated = await self.artifacts.write_dated(created_at.date(), data)
        logger.info(f"Snapshot written: {latest}, {dated}")

        statistics = compute_statistics(snapshot.users)
        logger.info(
            f"Statistics: {statistics.total_users} users, "
            f"{statistics.total_points} points, most common level: {statistics.top_level}"
        )

        return BackupMetadata(
            name=self.artifacts.dated_name(created_at.date()),
            created_at=created_at,
            total_users=snapshot.total_users,
            size_bytes=len(data),
            checksum=compute_checksum(data),
            statistics=statistics,
        )

    async def create_snapshot(self) -> Snapshot:
        snapshot = await self.capture()
        await self.write(snapshot)
        return snapshot
