"""Warehouse storage layer."""

from eventpipe.core.storage.duckdb_factory import DuckDBFactoryConfig, WarehouseConnectionFactory
from eventpipe.core.storage.migrations import MIGRATIONS, apply_migrations
from eventpipe.core.storage.schema import TABLES_BY_NAME, WAREHOUSE_INDEXES, WAREHOUSE_TABLES
from eventpipe.core.storage.warehouse import DataWarehouse

__all__ = [
    "MIGRATIONS",
    "TABLES_BY_NAME",
    "WAREHOUSE_INDEXES",
    "WAREHOUSE_TABLES",
    "DataWarehouse",
    "DuckDBFactoryConfig",
    "WarehouseConnectionFactory",
    "apply_migrations",
]
