"""Denormalized user registry projected from the live store."""

import math
from datetime import datetime
from typing import Any, Callable, Optional, Union

from .._utils import from_epoch_ms, is_digit_string, logger, to_iso, utc_now
from ..base import BaseArtifactStore, BaseUserStore
from ..schemas import UserPayload, is_points_value, points_of, profile_of
from .codec import normalize_updated_at, parse_payload
from .models import Registry, RegistryEntry
from .utils import dump_artifact


DEFAULT_NAME = "Аноним"
DEFAULT_CITY = ""
DEFAULT_LEVEL = "Талиб"


def _text(value: Any, default: Optional[str]) -> Optional[str]:
    return value if isinstance(value, str) and value else default


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return int(value)


def _timestamp_text(value: Optional[Union[int, str]], fallback: str) -> str:
    """Epoch-millisecond markers render as ISO-8601; other text is kept."""
    if value is None:
        return fallback
    if isinstance(value, int) or is_digit_string(value):
        try:
            return to_iso(from_epoch_ms(int(value)))
        except (OverflowError, ValueError, OSError):
            return str(value)
    return value


def project_entry(
    telegram_id: int,
    payload: UserPayload,
    updated_at: Optional[Union[int, str]],
    fallback_time: str,
) -> RegistryEntry:
    """Flatten one user document into a registry row, filling defaults."""
    profile = profile_of(payload)

    points = profile.get("totalPoints")
    if not is_points_value(points):
        points = points_of(payload)

    return RegistryEntry(
        telegram_id=telegram_id,
        name=_text(profile.get("name"), DEFAULT_NAME),
        city=_text(profile.get("city"), DEFAULT_CITY),
        level=_text(profile.get("level"), None) or _text(payload.get("level"), DEFAULT_LEVEL),
        total_points=_count(points),
        streak=_count(profile.get("streak")),
        joined_at=_text(profile.get("joinedAt"), None),
        last_updated=_timestamp_text(updated_at, fallback_time),
    )


class RegistryProjector:
    """Rebuild the registry artifact from scratch on every run."""

    def __init__(
        self,
        store: BaseUserStore,
        artifacts: BaseArtifactStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.artifacts = artifacts
        self.clock = clock

    async def rebuild_registry(self) -> Registry:
        """Project every row and replace the registry artifact.

        Rows whose document can't be decoded are left out and counted in
        Registry.skipped.

        Raises:
            StoreConnectionError: The scan failed; the old registry is kept
            ArtifactWriteError: The new registry couldn't be written
        """
        rows = await self.store.scan()
        now = to_iso(self.clock())

        entries = []
        skipped = 0
        for row in rows:
            try:
                payload = parse_payload(row["data"])
            except (TypeError, ValueError) as e:
                skipped += 1
                logger.warning(f"Registry: skipping user {row['telegram_id']}: {e}")
                continue
            entries.append(project_entry(
                row["telegram_id"],
                payload,
                normalize_updated_at(row.get("updated_at")),
                now,
            ))

        registry = Registry(
            last_updated=now,
            total_users=len(entries),
            skipped=skipped,
            users=entries,
        )
        location = await self.artifacts.write_registry(dump_artifact(registry))
        logger.info(f"Registry updated: {len(entries)} users, {skipped} skipped -> {location}")
        return registry
