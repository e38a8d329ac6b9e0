"""Dimensional warehouse schema: dimensions, facts and aggregates."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from duckdb import DuckDBPyConnection


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition.

    ``mutable`` columns are rewritten when a row with an existing primary key
    is stored again; every other column keeps its first-seen value.
    """

    name: str
    data_type: str
    constraints: Sequence[str] = ()
    mutable: bool = True

    def render(self) -> str:
        return " ".join([self.name, self.data_type, *self.constraints])


@dataclass(frozen=True)
class ForeignKey:
    column: str
    table: str
    target: str

    def render(self) -> str:
        return f"FOREIGN KEY ({self.column}) REFERENCES {self.table} ({self.target})"


@dataclass(frozen=True)
class IndexDef:
    name: str
    table: str
    columns: Sequence[str]

    def create_ddl(self) -> str:
        return f"CREATE INDEX IF NOT EXISTS {self.name} ON {self.table} ({', '.join(self.columns)})"


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()
    foreign_keys: Sequence[ForeignKey] = ()

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            column_defs.append(f"PRIMARY KEY ({', '.join(self.primary_key)})")
        column_defs.extend(fk.render() for fk in self.foreign_keys)
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table on the provided connection if it does not exist."""

        conn.execute(self.create_ddl())

    def update_columns(self, indexed: set[str] | None = None) -> tuple[str, ...]:
        """Columns an upsert may overwrite."""

        locked = set(self.primary_key) | {fk.column for fk in self.foreign_keys} | (indexed or set())
        return tuple(c.name for c in self.columns if c.mutable and c.name not in locked)

    def upsert_sql(self, indexed: set[str] | None = None) -> str:
        """``INSERT ... ON CONFLICT DO UPDATE`` statement over every column."""

        names = self.column_names
        placeholders = ", ".join("?" for _ in names)
        statement = f"INSERT INTO {self.name} ({', '.join(names)}) VALUES ({placeholders})"
        updates = self.update_columns(indexed)
        if not self.primary_key:
            return statement
        conflict = f" ON CONFLICT ({', '.join(self.primary_key)})"
        if not updates:
            return statement + conflict + " DO NOTHING"
        assignments = ", ".join(f"{name} = excluded.{name}" for name in updates)
        return statement + conflict + f" DO UPDATE SET {assignments}"


DIM_EVENTS = TableSchema(
    name="dim_events",
    columns=(
        ColumnDef("event_id", "VARCHAR"),
        ColumnDef("title", "VARCHAR", ("NOT NULL",)),
        ColumnDef("description", "VARCHAR"),
        ColumnDef("club_id", "VARCHAR"),
        ColumnDef("club_name", "VARCHAR"),
        ColumnDef("category_id", "VARCHAR"),
        ColumnDef("category_name", "VARCHAR"),
        ColumnDef("start_date", "TIMESTAMP"),
        ColumnDef("end_date", "TIMESTAMP"),
        ColumnDef("location", "VARCHAR"),
        ColumnDef("max_participants", "INTEGER"),
        ColumnDef("participation_type", "VARCHAR"),
        ColumnDef("requires_payment", "BOOLEAN"),
        ColumnDef("payment_amount", "DOUBLE"),
        ColumnDef("status", "VARCHAR"),
        ColumnDef("created_at", "TIMESTAMP", mutable=False),
        ColumnDef("updated_at", "TIMESTAMP"),
        ColumnDef("_processed_at", "TIMESTAMP"),
    ),
    primary_key=("event_id",),
)

DIM_USERS = TableSchema(
    name="dim_users",
    columns=(
        ColumnDef("user_id", "VARCHAR"),
        ColumnDef("participant_name", "VARCHAR"),
        ColumnDef("participant_phone", "VARCHAR"),
        ColumnDef("email_domain", "VARCHAR"),
        ColumnDef("first_registration_date", "TIMESTAMP", mutable=False),
        ColumnDef("total_registrations", "INTEGER", ("DEFAULT 0",), mutable=False),
        ColumnDef("total_attendance", "INTEGER", ("DEFAULT 0",), mutable=False),
        ColumnDef("engagement_score", "DOUBLE", ("DEFAULT 0.5",)),
        ColumnDef("created_at", "TIMESTAMP", mutable=False),
        ColumnDef("updated_at", "TIMESTAMP"),
    ),
    primary_key=("user_id",),
)

FACT_REGISTRATIONS = TableSchema(
    name="fact_registrations",
    columns=(
        ColumnDef("registration_id", "VARCHAR"),
        ColumnDef("event_id", "VARCHAR", ("NOT NULL",)),
        ColumnDef("user_id", "VARCHAR"),
        ColumnDef("participation_type", "VARCHAR"),
        ColumnDef("team_name", "VARCHAR"),
        ColumnDef("team_size", "INTEGER"),
        ColumnDef("payment_status", "VARCHAR"),
        ColumnDef("payment_amount", "DOUBLE"),
        ColumnDef("registration_hour", "INTEGER"),
        ColumnDef("registration_day_of_week", "INTEGER"),
        ColumnDef("days_until_event", "INTEGER"),
        ColumnDef("custom_fields_json", "VARCHAR"),
        ColumnDef("created_at", "TIMESTAMP", mutable=False),
        ColumnDef("_processed_at", "TIMESTAMP"),
    ),
    primary_key=("registration_id",),
    foreign_keys=(
        ForeignKey("event_id", "dim_events", "event_id"),
        ForeignKey("user_id", "dim_users", "user_id"),
    ),
)

FACT_ATTENDANCE = TableSchema(
    name="fact_attendance",
    columns=(
        ColumnDef("attendance_id", "VARCHAR"),
        ColumnDef("registration_id", "VARCHAR"),
        ColumnDef("event_id", "VARCHAR"),
        ColumnDef("user_id", "VARCHAR"),
        ColumnDef("attendance_status", "VARCHAR"),
        ColumnDef("marked_at", "TIMESTAMP", mutable=False),
        ColumnDef("qr_scan_method", "VARCHAR"),
        ColumnDef("attendance_hour", "INTEGER", mutable=False),
        ColumnDef("attendance_day_of_week", "INTEGER", mutable=False),
        ColumnDef("created_at", "TIMESTAMP", mutable=False),
    ),
    primary_key=("attendance_id",),
    foreign_keys=(
        ForeignKey("registration_id", "fact_registrations", "registration_id"),
        ForeignKey("event_id", "dim_events", "event_id"),
        ForeignKey("user_id", "dim_users", "user_id"),
    ),
)

AGG_EVENT_METRICS = TableSchema(
    name="agg_event_metrics",
    columns=(
        ColumnDef("metric_id", "VARCHAR"),
        ColumnDef("event_id", "VARCHAR"),
        ColumnDef("metric_date", "DATE"),
        ColumnDef("total_registrations", "INTEGER", ("DEFAULT 0",)),
        ColumnDef("total_attendance", "INTEGER", ("DEFAULT 0",)),
        ColumnDef("attendance_rate", "DOUBLE", ("DEFAULT 0",)),
        ColumnDef("revenue", "DOUBLE", ("DEFAULT 0",)),
        ColumnDef("avg_registration_time", "DOUBLE"),
        ColumnDef("team_participation_rate", "DOUBLE"),
        ColumnDef("created_at", "TIMESTAMP"),
    ),
    primary_key=("metric_id",),
    foreign_keys=(ForeignKey("event_id", "dim_events", "event_id"),),
)

AGG_DAILY_METRICS = TableSchema(
    name="agg_daily_metrics",
    columns=(
        ColumnDef("metric_date", "DATE"),
        ColumnDef("total_events", "INTEGER", ("DEFAULT 0",)),
        ColumnDef("total_registrations", "INTEGER", ("DEFAULT 0",)),
        ColumnDef("total_attendance", "INTEGER", ("DEFAULT 0",)),
        ColumnDef("total_revenue", "DOUBLE", ("DEFAULT 0",)),
        ColumnDef("avg_attendance_rate", "DOUBLE", ("DEFAULT 0",)),
        ColumnDef("created_at", "TIMESTAMP"),
    ),
    primary_key=("metric_date",),
)

SCHEMA_MIGRATIONS = TableSchema(
    name="schema_migrations",
    columns=(
        ColumnDef("version", "INTEGER"),
        ColumnDef("name", "VARCHAR", ("NOT NULL",)),
        ColumnDef("applied_at", "TIMESTAMP", ("NOT NULL",)),
    ),
    primary_key=("version",),
)

WAREHOUSE_TABLES: tuple[TableSchema, ...] = (
    DIM_EVENTS,
    DIM_USERS,
    FACT_REGISTRATIONS,
    FACT_ATTENDANCE,
    AGG_EVENT_METRICS,
    AGG_DAILY_METRICS,
)

TABLES_BY_NAME: dict[str, TableSchema] = {table.name: table for table in WAREHOUSE_TABLES}

WAREHOUSE_INDEXES: tuple[IndexDef, ...] = (
    IndexDef("idx_events_club_id", "dim_events", ("club_id",)),
    IndexDef("idx_events_category_id", "dim_events", ("category_id",)),
    IndexDef("idx_events_start_date", "dim_events", ("start_date",)),
    IndexDef("idx_registrations_event_id", "fact_registrations", ("event_id",)),
    IndexDef("idx_registrations_user_id", "fact_registrations", ("user_id",)),
    IndexDef("idx_registrations_created_at", "fact_registrations", ("created_at",)),
    IndexDef("idx_attendance_registration_id", "fact_attendance", ("registration_id",)),
    IndexDef("idx_attendance_event_id", "fact_attendance", ("event_id",)),
    IndexDef("idx_attendance_user_id", "fact_attendance", ("user_id",)),
    IndexDef("idx_attendance_marked_at", "fact_attendance", ("marked_at",)),
    IndexDef("idx_event_metrics_event_id", "agg_event_metrics", ("event_id",)),
)


def indexed_columns(table: str) -> set[str]:
    """Columns of ``table`` covered by a secondary index."""

    return {column for index in WAREHOUSE_INDEXES if index.table == table for column in index.columns}


__all__ = [
    "AGG_DAILY_METRICS",
    "AGG_EVENT_METRICS",
    "DIM_EVENTS",
    "DIM_USERS",
    "FACT_ATTENDANCE",
    "FACT_REGISTRATIONS",
    "SCHEMA_MIGRATIONS",
    "TABLES_BY_NAME",
    "WAREHOUSE_INDEXES",
    "WAREHOUSE_TABLES",
    "ColumnDef",
    "ForeignKey",
    "IndexDef",
    "TableSchema",
    "indexed_columns",
]
