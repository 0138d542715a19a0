from .interfaces import DatabaseConnector
from .models import (
    Column,
    DatabaseConfig,
    PoolConfig,
    SnowflakeConfig,
    SQLAlchemyConfig,
    Table,
    TableMetadata,
)

__all__ = [
    "DatabaseConnector",
    "Column",
    "DatabaseConfig",
    "PoolConfig",
    "SnowflakeConfig",
    "SQLAlchemyConfig",
    "Table",
    "TableMetadata",
]
