import sqlite3
from typing import Any, Dict, List, Mapping, Optional

import pytest

from dbgateway.common.cancellation import CancellationToken
from dbgateway.common.errors import MetadataError, QueryError
from dbgateway.connectors.interfaces import DatabaseConnector
from dbgateway.connectors.models import Column, DatabaseConfig, SQLAlchemyConfig, Table, TableMetadata


class FakeConnector(DatabaseConnector):
    """In-memory connector recording every call it receives."""

    def __init__(self, tables: Optional[Dict[str, TableMetadata]] = None, cancellation: Optional[CancellationToken] = None):
        super().__init__(DatabaseConfig(type="fake"), cancellation)
        self.tables = tables or {}
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.queries: List[tuple] = []
        self.rows: List[Dict[str, Any]] = []
        self.connect_error: Optional[Exception] = None
        self.disconnect_error: Optional[Exception] = None
        self.query_error: Optional[Exception] = None
        self.enhance_calls = 0
        self.events: List[str] = []
        self.idle = True

    def connect(self) -> None:
        self.connect_calls += 1
        self.events.append("connect")
        if self.connect_error is not None:
            raise self.connect_error

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.events.append("disconnect")
        if self.disconnect_error is not None:
            raise self.disconnect_error

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        self.events.append(f"wait_idle:{timeout}")
        return self.idle

    def list_tables(self) -> List[Table]:
        self.cancellation.raise_if_cancelled("list_tables")
        return [Table(name=name, row_count=meta.row_count) for name, meta in sorted(self.tables.items())]

    def get_table_metadata(self, table_name: str) -> TableMetadata:
        self.cancellation.raise_if_cancelled("get_table_metadata")
        if table_name not in self.tables:
            raise MetadataError(f"Table '{table_name}' not found or has no columns")
        return self.tables[table_name].model_copy(deep=True)

    def execute_query(self, query: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        self.cancellation.raise_if_cancelled("execute_query")
        self.queries.append((query, dict(params or {})))
        if self.query_error is not None:
            raise self.query_error
        if not query.strip():
            raise QueryError("Query template is empty")
        return list(self.rows)

    def enhance_metadata_with_llm(self, metadata: TableMetadata) -> None:
        self.enhance_calls += 1
        metadata.verbose_description = f"Describes {metadata.name}"


def users_metadata() -> TableMetadata:
    return TableMetadata(
        name="users",
        columns=[
            Column(name="id", type="serial", primary_key=True),
            Column(name="email", type="text", description="Login email"),
        ],
        row_count=2,
    )


def logs_metadata() -> TableMetadata:
    return TableMetadata(
        name="logs",
        columns=[
            Column(name="ts", type="timestamp"),
            Column(name="message", type="text"),
        ],
    )


@pytest.fixture
def fake_connector():
    """Returns a FakeConnector holding `users` and `logs`."""
    return FakeConnector({"users": users_metadata(), "logs": logs_metadata()})


@pytest.fixture
def sqlite_path(tmp_path):
    """Creates a small SQLite database file with two tables and a view."""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE customers (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT
        );
        CREATE TABLE orders (
            order_id INTEGER PRIMARY KEY,
            customer_id INTEGER REFERENCES customers(id),
            total REAL
        );
        CREATE VIEW big_orders AS SELECT * FROM orders WHERE total > 100;
        INSERT INTO customers (id, name, email) VALUES (1, 'Ada', 'ada@example.com');
        INSERT INTO customers (id, name, email) VALUES (2, 'Linus', 'linus@example.com');
        INSERT INTO customers (id, name, email) VALUES (3, 'Grace', NULL);
        INSERT INTO orders (order_id, customer_id, total) VALUES (10, 1, 250.0);
        INSERT INTO orders (order_id, customer_id, total) VALUES (11, 2, 20.5);
        """
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def sqlite_config(sqlite_path):
    """DatabaseConfig pointing the generic connector at the SQLite file."""
    return DatabaseConfig(
        type="sqlalchemy",
        sqlalchemy=SQLAlchemyConfig(url=f"sqlite:///{sqlite_path}"),
    )
