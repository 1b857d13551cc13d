"""Storage interfaces shared by the backup components."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Union

from .config import ArtifactConfig, StoreConfig


# One row as returned by BaseUserStore.scan(). "data" is either JSON text or an
# already-decoded structure, depending on the driver.
StoreRow = Dict[str, Any]


@dataclass
class BaseUserStore(ABC):
    """Live store holding one JSON document per Telegram user.

    A store instance is a scoped resource: create it for one run, close it
    when the run ends. Use it as an async context manager to get that for free.
    """

    config: StoreConfig

    @property
    def backend_name(self) -> str:
        return self.config.backend

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create the users table if it doesn't exist."""
        ...

    @abstractmethod
    async def scan(self) -> List[StoreRow]:
        """Return every row ordered by telegram_id.

        Raises:
            StoreConnectionError: store unreachable or the query failed
        """
        ...

    @abstractmethod
    async def get(self, telegram_id: int) -> Optional[StoreRow]:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def upsert(self, telegram_id: int, data: str, updated_at: Optional[Union[int, str]]) -> None:
        """Insert or overwrite a single user keyed by telegram_id.

        Raises:
            RecordError: the store rejected this row's values
            StoreConnectionError: the store itself failed
        """
        ...

    @abstractmethod
    def exclusive(self, name: str):
        """Async context manager holding a cross-process lock for one run.

        Raises:
            ConcurrentRunError: another process holds the lock
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def health(self) -> Dict[str, Any]:
        """Backend-specific details for the health check."""
        return {}

    async def __aenter__(self) -> "BaseUserStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


@dataclass
class BaseArtifactStore(ABC):
    """Where snapshot and registry files live.

    Snapshots come as a pair: a "latest" artifact that every run replaces and
    one dated artifact per calendar day. Writes must be all-or-nothing; a
    reader never sees a partially written artifact.
    """

    config: ArtifactConfig
    backend_name: str = field(init=False, default="artifacts")

    def dated_name(self, day: date) -> str:
        return f"{self.config.dated_prefix}{day.isoformat()}.json"

    def parse_dated_name(self, name: str) -> Optional[date]:
        prefix = self.config.dated_prefix
        if not (name.startswith(prefix) and name.endswith(".json")):
            return None
        try:
            return date.fromisoformat(name[len(prefix):-len(".json")])
        except ValueError:
            return None

    @abstractmethod
    async def write(self, name: str, data: bytes) -> str:
        """Write an artifact atomically and return its location.

        Raises:
            ArtifactWriteError: the artifact could not be written
        """
        ...

    @abstractmethod
    async def read(self, name: str) -> Optional[bytes]:
        """Return artifact bytes, or None when it doesn't exist.

        Raises:
            ArtifactReadError: the artifact exists but couldn't be read
        """
        ...

    @abstractmethod
    async def list_names(self) -> List[str]:
        ...

    async def health(self) -> Dict[str, Any]:
        return {}

    async def write_latest(self, data: bytes) -> str:
        return await self.write(self.config.latest_name, data)

    async def write_dated(self, day: date, data: bytes) -> str:
        return await self.write(self.dated_name(day), data)

    async def read_latest(self) -> Optional[bytes]:
        return await self.read(self.config.latest_name)

    async def read_dated(self, day: date) -> Optional[bytes]:
        return await self.read(self.dated_name(day))

    async def list_dated(self) -> List[date]:
        """Days that have a dated snapshot, newest first."""
        days = [self.parse_dated_name(name) for name in await self.list_names()]
        return sorted((d for d in days if d is not None), reverse=True)

    async def write_registry(self, data: bytes) -> str:
        return await self.write(self.config.registry_name, data)

    async def read_registry(self) -> Optional[bytes]:
        return await self.read(self.config.registry_name)
