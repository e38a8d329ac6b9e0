"""DuckDB-backed analytical warehouse."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any, TypeVar

import duckdb
from loguru import logger

from eventpipe.core.exceptions import StorageError, StorageInitError
from eventpipe.core.storage.duckdb_factory import (
    MEMORY_DATABASE,
    DuckDBFactoryConfig,
    WarehouseConnectionFactory,
)
from eventpipe.core.storage.mappers import TABLE_MAPPERS
from eventpipe.core.storage.migrations import apply_migrations
from eventpipe.core.storage.schema import TABLES_BY_NAME, WAREHOUSE_TABLES, indexed_columns

if TYPE_CHECKING:
    from eventpipe.core.config import PipelineConfig
    from eventpipe.core.models import ProcessedRecord
    from eventpipe.core.monitoring import MetricsCollector

T = TypeVar("T")

_ATTENDED = "(SELECT DISTINCT registration_id FROM fact_attendance)"
_RATE = (
    "COALESCE(ROUND(CAST(COUNT(a.registration_id) AS DOUBLE) * 100 "
    "/ NULLIF(COUNT(r.registration_id), 0), 2), 0)"
)

EVENT_ANALYTICS_SQL = f"""
    SELECT
        e.event_id,
        e.title,
        e.start_date,
        COUNT(r.registration_id) AS total_registrations,
        COUNT(a.registration_id) AS total_attendance,
        {_RATE} AS attendance_rate,
        COALESCE(SUM(r.payment_amount), 0) AS revenue
    FROM dim_events e
    LEFT JOIN fact_registrations r ON r.event_id = e.event_id
    LEFT JOIN {_ATTENDED} a ON a.registration_id = r.registration_id
    WHERE e.event_id = ?
    GROUP BY e.event_id, e.title, e.start_date
"""

REGISTRATION_TRENDS_SQL = """
    SELECT CAST(created_at AS DATE) AS date, COUNT(*) AS registrations
    FROM fact_registrations
    WHERE created_at >= ?
    GROUP BY CAST(created_at AS DATE)
    ORDER BY date
"""

REFRESH_EVENT_METRICS_SQL = f"""
    INSERT INTO agg_event_metrics (
        metric_id, event_id, metric_date, total_registrations, total_attendance,
        attendance_rate, revenue, avg_registration_time, team_participation_rate, created_at
    )
    SELECT
        e.event_id || '_' || ?,
        e.event_id,
        CAST(? AS DATE),
        COUNT(r.registration_id),
        COUNT(a.registration_id),
        {_RATE},
        COALESCE(SUM(r.payment_amount), 0),
        AVG(r.days_until_event),
        COALESCE(ROUND(CAST(SUM(CASE WHEN r.participation_type = 'team' THEN 1 ELSE 0 END) AS DOUBLE) * 100
            / NULLIF(COUNT(r.registration_id), 0), 2), 0),
        ?
    FROM dim_events e
    LEFT JOIN fact_registrations r ON r.event_id = e.event_id
    LEFT JOIN {_ATTENDED} a ON a.registration_id = r.registration_id
    GROUP BY e.event_id
    ON CONFLICT (metric_id) DO UPDATE SET
        total_registrations = excluded.total_registrations,
        total_attendance = excluded.total_attendance,
        attendance_rate = excluded.attendance_rate,
        revenue = excluded.revenue,
        avg_registration_time = excluded.avg_registration_time,
        team_participation_rate = excluded.team_participation_rate,
        created_at = excluded.created_at
"""

REFRESH_DAILY_METRICS_SQL = f"""
    INSERT INTO agg_daily_metrics (
        metric_date, total_events, total_registrations, total_attendance,
        total_revenue, avg_attendance_rate, created_at
    )
    SELECT
        CAST(r.created_at AS DATE),
        COUNT(DISTINCT r.event_id),
        COUNT(r.registration_id),
        COUNT(a.registration_id),
        COALESCE(SUM(r.payment_amount), 0),
        {_RATE},
        ?
    FROM fact_registrations r
    LEFT JOIN {_ATTENDED} a ON a.registration_id = r.registration_id
    WHERE r.created_at IS NOT NULL
    GROUP BY CAST(r.created_at AS DATE)
    ON CONFLICT (metric_date) DO UPDATE SET
        total_events = excluded.total_events,
        total_registrations = excluded.total_registrations,
        total_attendance = excluded.total_attendance,
        total_revenue = excluded.total_revenue,
        avg_attendance_rate = excluded.avg_attendance_rate,
        created_at = excluded.created_at
"""

REFRESH_USER_COUNTERS_SQL = """
    UPDATE dim_users SET
        total_registrations = (
            SELECT COUNT(*) FROM fact_registrations r WHERE r.user_id = dim_users.user_id
        ),
        total_attendance = (
            SELECT COUNT(*) FROM fact_attendance a WHERE a.user_id = dim_users.user_id
        ),
        first_registration_date = (
            SELECT MIN(r.created_at) FROM fact_registrations r WHERE r.user_id = dim_users.user_id
        )
"""


def _utcnow_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class DataWarehouse:
    """Owns the embedded store, its schema and every write transaction.

    DuckDB calls run in a worker thread; one asyncio lock serializes them on
    the single shared connection.
    """

    def __init__(
        self,
        path: str | Path = MEMORY_DATABASE,
        *,
        threads: int | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        settings: dict[str, object] = {"threads": threads} if threads else {}
        self._factory = WarehouseConnectionFactory(DuckDBFactoryConfig(database=path, settings=settings))
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._lock = asyncio.Lock()
        self.metrics = metrics

    @classmethod
    def from_config(cls, config: PipelineConfig, metrics: MetricsCollector | None = None) -> DataWarehouse:
        return cls(config.storage.warehouse_path, threads=config.storage.threads, metrics=metrics)

    @property
    def path(self) -> str:
        return self._factory.database

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise StorageError("Warehouse is not initialized")
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run the enclosed statements atomically."""

        conn = self._connection()
        conn.execute("BEGIN TRANSACTION")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    async def initialize(self) -> None:
        """Open the store and bring the schema up to date."""

        if self._conn is not None:
            return
        await self._run(self._initialize_sync)
        logger.info("Warehouse initialized", path=self.path)

    def _initialize_sync(self) -> None:
        conn: duckdb.DuckDBPyConnection | None = None
        try:
            self._factory.ensure_directory()
            conn = self._factory.create_connection()
            apply_migrations(conn)
        except (OSError, duckdb.Error) as exc:
            if conn is not None:
                conn.close()
            raise StorageInitError(f"Failed to initialize warehouse: {exc}", self.path) from exc
        self._conn = conn

    async def store_records(self, records: Sequence[ProcessedRecord], table_name: str) -> int:
        """Upsert every record belonging to ``table_name`` in one transaction.

        Records the table's mapper does not accept are skipped. Any failing row
        rolls back the whole call.

        Raises:
            StorageError: on an unknown table or a failed write.
        """

        table = TABLES_BY_NAME.get(table_name)
        mapper = TABLE_MAPPERS.get(table_name)
        if table is None or mapper is None:
            raise StorageError(f"Unknown warehouse table: {table_name}", table_name)

        rows = []
        for record in records:
            row = mapper(record)
            if row is not None:
                rows.append(tuple(row[name] for name in table.column_names))
        skipped = len(records) - len(rows)
        if skipped:
            logger.debug("Skipped unmappable records", table=table.name, skipped=skipped)
        if not rows:
            return 0

        sql = table.upsert_sql(indexed_columns(table.name))
        start = perf_counter()
        try:
            await self._run(self._write_rows, sql, rows)
        except duckdb.Error as exc:
            self._observe(table.name, len(rows), start, success=False)
            logger.error("Warehouse write rolled back", table=table.name, rows=len(rows), error=str(exc))
            raise StorageError(
                f"Failed to store {len(rows)} rows in {table.name}", table.name, {"cause": str(exc)}
            ) from exc

        self._observe(table.name, len(rows), start, success=True)
        logger.debug("Stored rows", table=table.name, rows=len(rows))
        return len(rows)

    def _write_rows(self, sql: str, rows: list[tuple[Any, ...]]) -> None:
        with self.transaction() as conn:
            for row in rows:
                conn.execute(sql, list(row))

    def _observe(self, table: str, rows: int, start: float, *, success: bool) -> None:
        if self.metrics is not None:
            self.metrics.observe_store(table, rows, perf_counter() - start, success=success)

    def _fetch_dicts(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        conn = self._connection()
        cursor = conn.execute(sql, list(params or []))
        columns = [column[0] for column in cursor.description or []]
        return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Run a parameterized read query and return its rows."""

        try:
            return await self._run(self._fetch_dicts, sql, params)
        except duckdb.Error as exc:
            raise StorageError(f"Query failed: {exc}", details={"cause": str(exc)}) from exc

    async def get_event_analytics(self, event_id: str) -> dict[str, Any] | None:
        rows = await self.query(EVENT_ANALYTICS_SQL, [event_id])
        return rows[0] if rows else None

    async def get_registration_trends(self, days: int = 30) -> list[dict[str, Any]]:
        """Daily registration counts over the trailing ``days`` window."""

        cutoff = _utcnow_naive() - timedelta(days=days)
        return await self.query(REGISTRATION_TRENDS_SQL, [cutoff])

    async def refresh_aggregates(self) -> dict[str, int]:
        """Recompute aggregate tables and user counters in one transaction."""

        try:
            counts = await self._run(self._refresh_sync, _utcnow_naive())
        except duckdb.Error as exc:
            raise StorageError(f"Aggregate refresh failed: {exc}", details={"cause": str(exc)}) from exc
        logger.info("Aggregates refreshed", **counts)
        return counts

    def _refresh_sync(self, now: datetime) -> dict[str, int]:
        today: date = now.date()
        with self.transaction() as conn:
            conn.execute(REFRESH_EVENT_METRICS_SQL, [today.isoformat(), today, now])
            conn.execute(REFRESH_DAILY_METRICS_SQL, [now])
            conn.execute(REFRESH_USER_COUNTERS_SQL)
        return {
            "agg_event_metrics": self._count("agg_event_metrics"),
            "agg_daily_metrics": self._count("agg_daily_metrics"),
            "dim_users": self._count("dim_users"),
        }

    def _count(self, table: str) -> int:
        row = self._connection().execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(row[0]) if row else 0

    def _table_counts_sync(self) -> dict[str, int]:
        return {table.name: self._count(table.name) for table in WAREHOUSE_TABLES}

    async def get_table_counts(self) -> dict[str, int]:
        return await self._run(self._table_counts_sync)

    def _ping(self) -> None:
        self._connection().execute("SELECT 1").fetchone()

    async def health_check(self) -> dict[str, Any]:
        if self._conn is None:
            return {"status": "not_initialized", "path": self.path}
        try:
            await self._run(self._ping)
        except duckdb.Error as exc:
            return {"status": "unhealthy", "path": self.path, "error": str(exc)}
        return {"status": "healthy", "path": self.path}

    async def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        async with self._lock:
            await asyncio.to_thread(conn.close)
        logger.info("Warehouse closed", path=self.path)


__all__ = ["DataWarehouse"]
