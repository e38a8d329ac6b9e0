"""Warehouse commands: schema setup, guarded queries and analytics."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer

from eventpipe.core.config import PipelineConfig
from eventpipe.core.exceptions import PipelineError, QueryRejectedError, StorageError
from eventpipe.core.pipeline import ensure_read_only
from eventpipe.core.storage import DataWarehouse

from .constants import NOT_FOUND_EXIT_CODE, STORAGE_EXIT_CODE, SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import emit_error, emit_pipeline_error, load_config, render_rows

T = TypeVar("T")

ANALYTICS_COLUMNS = [
    "event_id",
    "title",
    "start_date",
    "total_registrations",
    "total_attendance",
    "attendance_rate",
    "revenue",
]
TREND_COLUMNS = ["date", "registrations"]


def register(app: typer.Typer) -> None:
    """Register warehouse commands on the provided application."""

    app.command("init-warehouse")(init_warehouse_command)
    app.command("query")(query_command)
    app.command("event-analytics")(event_analytics_command)
    app.command("trends")(trends_command)
    app.command("refresh-aggregates")(refresh_aggregates_command)


def get_warehouse(config: PipelineConfig) -> DataWarehouse:
    """Factory hook for obtaining a :class:`DataWarehouse`."""

    return DataWarehouse.from_config(config)


def _run_with_warehouse(ctx: typer.Context, action: Callable[[DataWarehouse], Awaitable[T]]) -> T:
    warehouse = get_warehouse(load_config(ctx))

    async def runner() -> T:
        try:
            await warehouse.initialize()
            return await action(warehouse)
        finally:
            await warehouse.close()

    try:
        return asyncio.run(runner())
    except QueryRejectedError as error:
        emit_pipeline_error(error)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
    except StorageError as error:
        emit_pipeline_error(error)
        raise typer.Exit(code=STORAGE_EXIT_CODE) from error
    except PipelineError as error:
        emit_pipeline_error(error)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error


def init_warehouse_command(ctx: typer.Context) -> None:
    """Create the warehouse schema and apply pending migrations."""

    async def action(warehouse: DataWarehouse) -> dict[str, int]:
        return await warehouse.get_table_counts()

    counts = _run_with_warehouse(ctx, action)
    render_rows(ctx, [{"table": table, "rows": rows} for table, rows in counts.items()], ["table", "rows"])


def query_command(
    ctx: typer.Context,
    sql: str = typer.Argument(..., help="Read-only SQL statement."),
    params: list[str] | None = typer.Option(None, "--param", "-p", help="Positional query parameter."),
) -> None:
    """Run a read-only SQL query against the warehouse."""

    try:
        statement = ensure_read_only(sql)
    except QueryRejectedError as error:
        emit_pipeline_error(error)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error

    async def action(warehouse: DataWarehouse) -> list[dict[str, Any]]:
        return await warehouse.query(statement, params or None)

    render_rows(ctx, _run_with_warehouse(ctx, action))


def event_analytics_command(
    ctx: typer.Context,
    event_id: str = typer.Argument(..., help="Event identifier."),
) -> None:
    """Show registration, attendance and revenue figures for one event."""

    async def action(warehouse: DataWarehouse) -> dict[str, Any] | None:
        return await warehouse.get_event_analytics(event_id)

    row = _run_with_warehouse(ctx, action)
    if row is None:
        emit_error(f"Event '{event_id}' not found", "NOT_FOUND", details={"event_id": event_id})
        raise typer.Exit(code=NOT_FOUND_EXIT_CODE)
    render_rows(ctx, [row], ANALYTICS_COLUMNS)


def trends_command(
    ctx: typer.Context,
    days: int = typer.Option(30, "--days", min=1, help="Trailing window in days."),
) -> None:
    """Show daily registration counts."""

    async def action(warehouse: DataWarehouse) -> list[dict[str, Any]]:
        return await warehouse.get_registration_trends(days)

    render_rows(ctx, _run_with_warehouse(ctx, action), TREND_COLUMNS)


def refresh_aggregates_command(ctx: typer.Context) -> None:
    """Recompute aggregate tables and per-user counters."""

    async def action(warehouse: DataWarehouse) -> dict[str, int]:
        return await warehouse.refresh_aggregates()

    counts = _run_with_warehouse(ctx, action)
    render_rows(ctx, [{"table": table, "rows": rows} for table, rows in counts.items()], ["table", "rows"])


__all__ = ["get_warehouse", "register"]
