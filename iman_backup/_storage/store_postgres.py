"""PostgreSQL live store backed by an asyncpg connection pool."""

import ssl as ssl_lib
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import asyncpg

from ..base import BaseUserStore, StoreRow
from ..exceptions import ConcurrentRunError, RecordError, StoreConnectionError
from .._utils import logger, parse_epoch_ms, to_epoch_ms, utc_now


# Errors that mean the row's values were refused while the server stayed healthy
_RECORD_ERRORS = (
    asyncpg.exceptions.DataError,
    asyncpg.exceptions.IntegrityConstraintViolationError,
    asyncpg.exceptions.InvalidTextRepresentationError,
    asyncpg.exceptions.UntranslatableCharacterError,
)

_STORE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
)


def normalize_dsn(raw_dsn: str) -> str:
    """Strip SQLAlchemy driver suffixes so asyncpg accepts the DSN."""
    dsn = raw_dsn.strip()
    for prefix in ("postgresql+asyncpg://", "postgres+asyncpg://"):
        if dsn.startswith(prefix):
            return "postgresql://" + dsn[len(prefix):]
    return dsn


@dataclass
class PostgresUserStore(BaseUserStore):
    """Users table in PostgreSQL.

    The pool is created lazily on first use and closed by close(). The data
    column is JSONB; rows come back as JSON text because no type codec is
    registered for it. While exclusive() holds the advisory lock every query
    runs on the locking connection, so a pool of one connection is enough.
    """

    _pool: Optional[Any] = field(init=False, default=None)
    _lock_conn: Optional[Any] = field(init=False, default=None)

    def __post_init__(self):
        if not self.config.database_url:
            raise ValueError("PostgresUserStore requires database_url")
        self.dsn = normalize_dsn(self.config.database_url)
        self.table = self.config.table

    def _ssl_context(self):
        if not self.config.ssl:
            return None
        # Managed Postgres (Railway, Heroku) uses certificates we can't verify
        context = ssl_lib.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl_lib.CERT_NONE
        return context

    async def _ensure_initialized(self):
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.config.min_pool_size,
                max_size=self.config.max_pool_size,
                timeout=self.config.connect_timeout,
                ssl=self._ssl_context(),
            )
        except _STORE_ERRORS as e:
            logger.error(f"Postgres connection failed: {e}")
            raise StoreConnectionError("postgres", e) from e
        logger.info(f"Connected to Postgres, table: {self.table}")

    @property
    def _db(self):
        return self._lock_conn if self._lock_conn is not None else self._pool

    async def ensure_schema(self) -> None:
        await self._ensure_initialized()
        try:
            await self._db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    telegram_id BIGINT PRIMARY KEY,
                    data JSONB NOT NULL,
                    updated_at BIGINT NOT NULL
                )
                """
            )
        except _STORE_ERRORS as e:
            raise StoreConnectionError("postgres", e) from e

    async def scan(self) -> List[StoreRow]:
        await self._ensure_initialized()
        try:
            rows = await self._db.fetch(
                f"SELECT telegram_id, data, updated_at FROM {self.table} ORDER BY telegram_id"
            )
        except _STORE_ERRORS as e:
            raise StoreConnectionError("postgres", e) from e
        return [dict(row) for row in rows]

    async def get(self, telegram_id: int) -> Optional[StoreRow]:
        await self._ensure_initialized()
        try:
            row = await self._db.fetchrow(
                f"SELECT telegram_id, data, updated_at FROM {self.table} WHERE telegram_id = $1",
                telegram_id,
            )
        except _STORE_ERRORS as e:
            raise StoreConnectionError("postgres", e) from e
        return dict(row) if row is not None else None

    async def count(self) -> int:
        await self._ensure_initialized()
        try:
            return await self._db.fetchval(f"SELECT COUNT(*) FROM {self.table}")
        except _STORE_ERRORS as e:
            raise StoreConnectionError("postgres", e) from e

    async def upsert(self, telegram_id: int, data: str, updated_at: Optional[Union[int, str]]) -> None:
        """Insert or overwrite one row.

        updated_at is BIGINT NOT NULL here: digit strings and ISO-8601
        timestamps are converted to epoch milliseconds and a missing value
        becomes the current time. Anything else is a RecordError.
        """
        try:
            marker = to_epoch_ms(utc_now()) if updated_at is None else parse_epoch_ms(updated_at)
        except ValueError as e:
            raise RecordError(telegram_id, e) from e

        await self._ensure_initialized()
        try:
            await self._db.execute(
                f"""
                INSERT INTO {self.table} (telegram_id, data, updated_at)
                VALUES ($1, $2::jsonb, $3)
                ON CONFLICT (telegram_id) DO UPDATE SET
                    data = EXCLUDED.data,
                    updated_at = EXCLUDED.updated_at
                """,
                telegram_id, data, marker,
            )
        except _RECORD_ERRORS as e:
            raise RecordError(telegram_id, e) from e
        except (TypeError, ValueError, OverflowError) as e:
            # asyncpg refuses to encode the argument client-side
            raise RecordError(telegram_id, e) from e
        except _STORE_ERRORS as e:
            raise StoreConnectionError("postgres", e) from e

    @asynccontextmanager
    async def exclusive(self, name: str):
        """Session-level advisory lock held on one pooled connection.

        The server releases it when that connection closes, so a crashed run
        can't keep other runs out.
        """
        await self._ensure_initialized()
        try:
            conn = await self._pool.acquire()
        except _STORE_ERRORS as e:
            raise StoreConnectionError("postgres", e) from e

        try:
            acquired = await conn.fetchval("SELECT pg_try_advisory_lock($1)", self.config.lock_key)
            if not acquired:
                raise ConcurrentRunError(f"pg_advisory_lock({self.config.lock_key}) for {name}")
            logger.debug(f"Acquired advisory lock {self.config.lock_key} for {name}")
            self._lock_conn = conn
            try:
                yield
            finally:
                self._lock_conn = None
                await conn.execute("SELECT pg_advisory_unlock($1)", self.config.lock_key)
                logger.debug(f"Released advisory lock {self.config.lock_key}")
        finally:
            await self._pool.release(conn)

    async def close(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            await pool.close()
            logger.debug("Closed Postgres pool")

    async def health(self) -> Dict[str, Any]:
        details: Dict[str, str] = {"table": self.table}
        issues: List[str] = []
        try:
            await self._ensure_initialized()
            details["users"] = str(await self.count())
            details["server_time"] = str(await self._db.fetchval("SELECT NOW()"))
        except StoreConnectionError as e:
            issues.append(str(e))
        return {"details": details, "warnings": [], "issues": issues}
