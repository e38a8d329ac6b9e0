"""Creation of configured DuckDB connections for the warehouse."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from collections.abc import Mapping

MEMORY_DATABASE = ":memory:"


@dataclass(frozen=True)
class DuckDBFactoryConfig:
    """Configuration applied to DuckDB connections produced by the factory."""

    database: str | Path = MEMORY_DATABASE
    read_only: bool = False
    settings: Mapping[str, object] = field(default_factory=dict)


def _literal(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


class WarehouseConnectionFactory:
    """Factory that yields configured DuckDB connections."""

    def __init__(self, config: DuckDBFactoryConfig | None = None) -> None:
        self._config = config or DuckDBFactoryConfig()

    @property
    def database(self) -> str:
        return str(self._config.database)

    @property
    def is_memory(self) -> bool:
        return self.database == MEMORY_DATABASE

    def ensure_directory(self) -> None:
        """Create the parent directory of a file-backed database."""

        if self.is_memory:
            return
        Path(self.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    def create_connection(self) -> duckdb.DuckDBPyConnection:
        """Create and return a configured DuckDB connection."""

        conn = duckdb.connect(database=self.database, read_only=self._config.read_only)
        self._apply_settings(conn)
        return conn

    def _apply_settings(self, conn: duckdb.DuckDBPyConnection) -> None:
        for setting, value in self._config.settings.items():
            conn.execute(f"SET {setting}={_literal(value)}")


__all__ = ["DuckDBFactoryConfig", "MEMORY_DATABASE", "WarehouseConnectionFactory"]
