"""SQLite live store, used by the single-file deployment and local development."""

import asyncio
import fcntl
import os
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..base import BaseUserStore, StoreRow
from ..exceptions import ConcurrentRunError, RecordError, StoreConnectionError
from .._utils import is_digit_string, logger


@dataclass
class SQLiteUserStore(BaseUserStore):
    """Users table in a SQLite file.

    sqlite3 calls are blocking, so each one runs in a worker thread.
    """

    _conn: Optional[sqlite3.Connection] = field(init=False, default=None)

    def __post_init__(self):
        self.db_path = Path(self.config.sqlite_path)
        self.table = self.config.table

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
            except (sqlite3.Error, OSError) as e:
                raise StoreConnectionError("sqlite", e) from e
            self._conn = conn
            logger.debug(f"Opened SQLite store: {self.db_path}")
        return self._conn

    async def _run(self, fn, *args):
        return await asyncio.to_thread(fn, *args)

    async def ensure_schema(self) -> None:
        def _create():
            conn = self._connect()
            with conn:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        telegram_id INTEGER PRIMARY KEY,
                        data TEXT NOT NULL,
                        updated_at INTEGER
                    )
                    """
                )
        try:
            await self._run(_create)
        except sqlite3.Error as e:
            raise StoreConnectionError("sqlite", e) from e

    async def scan(self) -> List[StoreRow]:
        def _scan():
            cursor = self._connect().execute(
                f"SELECT telegram_id, data, updated_at FROM {self.table} ORDER BY telegram_id"
            )
            return [dict(row) for row in cursor.fetchall()]
        try:
            return await self._run(_scan)
        except sqlite3.Error as e:
            raise StoreConnectionError("sqlite", e) from e

    async def get(self, telegram_id: int) -> Optional[StoreRow]:
        def _get():
            row = self._connect().execute(
                f"SELECT telegram_id, data, updated_at FROM {self.table} WHERE telegram_id = ?",
                (telegram_id,),
            ).fetchone()
            return dict(row) if row is not None else None
        try:
            return await self._run(_get)
        except sqlite3.Error as e:
            raise StoreConnectionError("sqlite", e) from e

    async def count(self) -> int:
        def _count():
            return self._connect().execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()[0]
        try:
            return await self._run(_count)
        except sqlite3.Error as e:
            raise StoreConnectionError("sqlite", e) from e

    async def upsert(self, telegram_id: int, data: str, updated_at: Optional[Union[int, str]]) -> None:
        """Insert or overwrite one row.

        Digit-string updated_at values are stored as integers, the same as
        INTEGER column affinity does; ISO strings and None are kept as given.
        """
        if is_digit_string(updated_at):
            updated_at = int(updated_at)

        def _upsert():
            conn = self._connect()
            with conn:
                conn.execute(
                    f"""
                    INSERT INTO {self.table} (telegram_id, data, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(telegram_id) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                    """,
                    (telegram_id, data, updated_at),
                )
        try:
            await self._run(_upsert)
        except (sqlite3.IntegrityError, sqlite3.InterfaceError, sqlite3.DataError,
                sqlite3.ProgrammingError, OverflowError) as e:
            # The row's values were rejected; the database itself is fine
            raise RecordError(telegram_id, e) from e
        except sqlite3.Error as e:
            raise StoreConnectionError("sqlite", e) from e

    @asynccontextmanager
    async def exclusive(self, name: str):
        """Hold an flock on a sidecar file next to the database.

        The kernel drops the lock when the process exits, so a killed run
        never leaves a stale lock behind.
        """
        lock_path = self.db_path.with_name(f"{self.db_path.name}.{name}.lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR, 0o644)
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as e:
                raise ConcurrentRunError(str(lock_path)) from e
            os.ftruncate(fd, 0)
            os.write(fd, str(os.getpid()).encode())
            logger.debug(f"Acquired lock {lock_path}")
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                logger.debug(f"Released lock {lock_path}")
        finally:
            os.close(fd)

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await self._run(conn.close)
            logger.debug(f"Closed SQLite store: {self.db_path}")

    async def health(self) -> Dict[str, Any]:
        details: Dict[str, str] = {"database": str(self.db_path)}
        warnings: List[str] = []
        issues: List[str] = []

        if not self.db_path.exists():
            warnings.append(f"Database {self.db_path} does not exist yet")
            return {"details": details, "warnings": warnings, "issues": issues}

        stat = self.db_path.stat()
        size_mb = stat.st_size / (1024 * 1024)
        details["database_size_mb"] = f"{size_mb:.2f}"
        details["database_modified"] = datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat()

        for suffix in ("-wal", "-shm"):
            sidecar = self.db_path.with_name(self.db_path.name + suffix)
            if sidecar.exists():
                details[f"{suffix[1:]}_file_kb"] = f"{sidecar.stat().st_size / 1024:.2f}"

        return {"details": details, "warnings": warnings, "issues": issues, "size_mb": size_mb}
