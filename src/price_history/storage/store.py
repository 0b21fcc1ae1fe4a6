"""Storage backend: Protocol definition, SQLite implementation, factory."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from price_history.core.config import StorageConfig
from price_history.core.exceptions import StorageError
from price_history.core.models import (
    PointFilter,
    PricePoint,
    PriceRecord,
    SortOrder,
    StorageBackend as StorageBackendEnum,
)

logger = logging.getLogger(__name__)

_TABLE = "price_points"
_FIELDS = ("date", "asset", "usd", "inr")
_ORDER_SQL = {
    SortOrder.DESC: "ORDER BY date DESC",
    SortOrder.ASC: "ORDER BY date ASC",
    SortOrder.NATURAL: "ORDER BY id",
}


@runtime_checkable
class PriceStore(Protocol):
    """Persistence contract used by the reconciler and the query service."""

    async def upsert(self, point: PricePoint) -> None: ...
    async def delete_all_for_asset(self, asset: str) -> int: ...
    async def insert_many(self, points: Iterable[PricePoint]) -> int: ...
    async def query(
        self,
        flt: PointFilter,
        exclude: frozenset[str] = frozenset(),
        order: SortOrder = SortOrder.DESC,
        limit: int | None = None,
    ) -> list[PriceRecord]: ...
    async def count(self, asset: str | None = None) -> int: ...
    async def date_span(self, asset: str) -> tuple[date, date] | None: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
    async def health_check(self) -> bool: ...


class SqlitePriceStore:
    """SQLite implementation of the price store.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system. Dates are stored as ISO
    ``YYYY-MM-DD`` text so lexical order equals chronological order.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS price_points (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    asset TEXT NOT NULL,
                    usd REAL NOT NULL,
                    inr REAL NOT NULL,
                    UNIQUE(date, asset)
                )""",
                "CREATE INDEX IF NOT EXISTS idx_price_points_date ON price_points(date)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "Store is not initialized",
                context={"operation": "connect", "path": self._path},
            )
        return self._db

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Writes ---

    async def upsert(self, point: PricePoint) -> None:
        """Insert the point, or overwrite its prices if (date, asset) exists."""
        db = self._conn
        try:
            await db.execute(
                """INSERT INTO price_points (date, asset, usd, inr)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(date, asset) DO UPDATE SET
                       usd = excluded.usd,
                       inr = excluded.inr""",
                self._point_params(point),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to upsert price point: {e}",
                context={
                    "operation": "upsert",
                    "table": _TABLE,
                    "date": point.date.isoformat(),
                    "asset": point.asset,
                },
            ) from e

    async def delete_all_for_asset(self, asset: str) -> int:
        db = self._conn
        try:
            cursor = await db.execute(
                "DELETE FROM price_points WHERE asset = ?", (asset,)
            )
            await db.commit()
            return cursor.rowcount
        except Exception as e:
            raise StorageError(
                f"Failed to delete price points: {e}",
                context={"operation": "delete", "table": _TABLE, "asset": asset},
            ) from e

    async def insert_many(self, points: Iterable[PricePoint]) -> int:
        """Plain bulk insert. A key collision fails the whole batch."""
        db = self._conn
        rows = [self._point_params(p) for p in points]
        if not rows:
            return 0
        try:
            await db.executemany(
                "INSERT INTO price_points (date, asset, usd, inr) VALUES (?, ?, ?, ?)",
                rows,
            )
            await db.commit()
        except Exception as e:
            await db.rollback()
            raise StorageError(
                f"Failed to insert price points: {e}",
                context={"operation": "insert_many", "table": _TABLE, "rows": len(rows)},
            ) from e
        logger.info("Inserted %d price points", len(rows))
        return len(rows)

    # --- Reads ---

    async def query(
        self,
        flt: PointFilter,
        exclude: frozenset[str] = frozenset(),
        order: SortOrder = SortOrder.DESC,
        limit: int | None = None,
    ) -> list[PriceRecord]:
        """Return projected records matching ``flt``.

        ``exclude`` names fields to drop from each record; ``limit=None``
        returns every match.
        """
        columns = [f for f in _FIELDS if f not in exclude]
        if not columns:
            raise StorageError(
                "Projection excludes every field",
                context={"operation": "query", "table": _TABLE},
            )
        if flt.dates is not None and not flt.dates:
            return []

        clauses, params = self._where(flt)
        sql = f"SELECT {', '.join(columns)} FROM price_points"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " " + _ORDER_SQL[order]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        try:
            async with self._conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to query price points: {e}",
                context={"operation": "query", "table": _TABLE},
            ) from e
        return [self._row_to_record(row) for row in rows]

    async def count(self, asset: str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM price_points"
        params: tuple = ()
        if asset is not None:
            sql += " WHERE asset = ?"
            params = (asset,)
        try:
            async with self._conn.execute(sql, params) as cursor:
                row = await cursor.fetchone()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to count price points: {e}",
                context={"operation": "count", "table": _TABLE},
            ) from e
        return row[0]

    async def date_span(self, asset: str) -> tuple[date, date] | None:
        try:
            async with self._conn.execute(
                "SELECT MIN(date), MAX(date) FROM price_points WHERE asset = ?",
                (asset,),
            ) as cursor:
                row = await cursor.fetchone()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to read date span: {e}",
                context={"operation": "date_span", "table": _TABLE},
            ) from e
        if row is None or row[0] is None:
            return None
        return date.fromisoformat(row[0]), date.fromisoformat(row[1])

    # --- Helpers ---

    @staticmethod
    def _where(flt: PointFilter) -> tuple[list[str], list[object]]:
        clauses: list[str] = []
        params: list[object] = []
        if flt.asset is not None:
            clauses.append("asset = ?")
            params.append(flt.asset)
        if flt.start is not None:
            clauses.append("date >= ?")
            params.append(flt.start.isoformat())
        if flt.end is not None:
            clauses.append("date <= ?")
            params.append(flt.end.isoformat())
        if flt.on is not None:
            clauses.append("date = ?")
            params.append(flt.on.isoformat())
        if flt.dates is not None:
            clauses.append(f"date IN ({', '.join('?' * len(flt.dates))})")
            params.extend(sorted(d.isoformat() for d in flt.dates))
        if flt.require is not None:
            clauses.append(f"{flt.require.value} IS NOT NULL")
        return clauses, params

    @staticmethod
    def _point_params(point: PricePoint) -> tuple:
        return (point.date.isoformat(), point.asset, point.usd, point.inr)

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> PriceRecord:
        record: PriceRecord = dict(row)
        if "date" in record:
            record["date"] = date.fromisoformat(record["date"])
        return record


async def create_store(config: StorageConfig) -> SqlitePriceStore:
    """Create and initialize a storage backend based on configuration."""
    if config.backend == StorageBackendEnum.SQLITE:
        store = SqlitePriceStore(config)
        await store.initialize()
        return store
    raise StorageError(
        f"Unsupported storage backend: {config.backend}",
        context={"operation": "create_store", "backend": str(config.backend)},
    )
