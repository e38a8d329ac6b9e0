"""Versioned, idempotent warehouse migrations."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from duckdb import DuckDBPyConnection
from loguru import logger

from eventpipe.core.storage.schema import SCHEMA_MIGRATIONS, WAREHOUSE_INDEXES, WAREHOUSE_TABLES


@dataclass(slots=True, frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[DuckDBPyConnection], None]


def _create_tables(conn: DuckDBPyConnection) -> None:
    for table in WAREHOUSE_TABLES:
        table.ensure(conn)


def _create_indexes(conn: DuckDBPyConnection) -> None:
    for index in WAREHOUSE_INDEXES:
        conn.execute(index.create_ddl())


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "create_dimensional_tables", _create_tables),
    Migration(2, "create_indexes", _create_indexes),
)


def applied_versions(conn: DuckDBPyConnection) -> set[int]:
    SCHEMA_MIGRATIONS.ensure(conn)
    rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
    return {int(row[0]) for row in rows}


def apply_migrations(conn: DuckDBPyConnection, migrations: tuple[Migration, ...] = MIGRATIONS) -> list[int]:
    """Apply every pending migration in order, each in its own transaction."""

    done = applied_versions(conn)
    applied: list[int] = []
    for migration in sorted(migrations, key=lambda item: item.version):
        if migration.version in done:
            continue
        conn.execute("BEGIN TRANSACTION")
        try:
            migration.apply(conn)
            conn.execute(
                "INSERT INTO schema_migrations (version, name, applied_at) VALUES (?, ?, ?)",
                [migration.version, migration.name, datetime.now(UTC).replace(tzinfo=None)],
            )
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        applied.append(migration.version)
        logger.info("Applied warehouse migration", version=migration.version, migration=migration.name)
    return applied


__all__ = ["MIGRATIONS", "Migration", "applied_versions", "apply_migrations"]
