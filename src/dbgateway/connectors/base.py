import time
from abc import abstractmethod
from contextlib import contextmanager
from threading import Condition, Lock
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine import URL, Connection
from sqlalchemy.exc import SQLAlchemyError

from dbgateway.common.cancellation import CancellationToken
from dbgateway.common.errors import (
    DatabaseConnectionError,
    ErrorCode,
    GatewayError,
    MetadataError,
    OperationCancelledError,
    QueryError,
)
from dbgateway.common.logger import get_logger
from dbgateway.llm.enhancer import MetadataEnhancer, TemplateMetadataEnhancer
from .interfaces import DatabaseConnector
from .models import Column, DatabaseConfig, Table, TableMetadata
from .params import bind_named_parameters

logger = get_logger(__name__)

SAMPLE_ROW_LIMIT = 5
FETCH_BATCH_SIZE = 500


def quote_identifier(name: str) -> str:
    return f'"{name}"'


class BaseSQLAlchemyConnector(DatabaseConnector):
    """
    Base class for SQLAlchemy-backed connectors.
    Implements pooling, parameter binding, row mapping and cancellation;
    subclasses supply the engine URL and catalog queries.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        cancellation: Optional[CancellationToken] = None,
        enhancer: Optional[MetadataEnhancer] = None,
    ):
        super().__init__(config, cancellation)
        self.enhancer = enhancer or TemplateMetadataEnhancer()
        self.engine: Optional[Engine] = None
        self._engine_lock = Lock()
        # DBAPI connections currently executing, keyed by id()
        self._active: Dict[int, Any] = {}
        self._active_cond = Condition()

    @property
    def active_operations(self) -> int:
        with self._active_cond:
            return len(self._active)

    @abstractmethod
    def build_url(self) -> Union[str, URL]:
        """Return the SQLAlchemy URL for this backend."""
        pass

    def build_connect_args(self) -> Dict[str, Any]:
        """Driver-level keyword arguments (credentials, session options)."""
        return {}

    def pool_options(self) -> Dict[str, Any]:
        pool = self.config.pool
        max_idle = min(pool.max_idle, pool.max_open)
        return {
            "pool_size": max_idle,
            "max_overflow": pool.max_open - max_idle,
            "pool_recycle": pool.max_lifetime_sec,
            "pool_pre_ping": True,
        }

    def create_engine(self, url: Union[str, URL], connect_args: Dict[str, Any]) -> Engine:
        return create_engine(url, connect_args=connect_args, **self.pool_options())

    def connect(self) -> None:
        # Configuration problems surface before any network activity.
        url = self.build_url()
        connect_args = self.build_connect_args()
        self.cancellation.raise_if_cancelled("connect")
        try:
            engine = self.create_engine(url, connect_args)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Failed to connect to {self}: {e}")
            raise DatabaseConnectionError(f"Failed to connect to {self.backend}: {e}") from e
        with self._engine_lock:
            self.engine = engine
        self.cancellation.add_callback(self.interrupt_active)
        logger.info(f"Connected to {self}")

    def disconnect(self) -> None:
        self.cancellation.remove_callback(self.interrupt_active)
        with self._engine_lock:
            engine, self.engine = self.engine, None
        if engine is not None:
            engine.dispose()
            logger.info(f"Disconnected from {self}")

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._active_cond:
            while self._active:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._active_cond.wait(remaining)
        return True

    def interrupt_connection(self, dbapi_connection: Any) -> None:
        """Aborts the statement running on one DBAPI connection.

        Works for drivers exposing `interrupt()` (sqlite3) or `cancel()`
        (psycopg2, psycopg). Backends override this for other drivers.
        """
        for name in ("interrupt", "cancel"):
            method = getattr(dbapi_connection, name, None)
            if callable(method):
                method()
                return
        logger.warning(f"{self} cannot interrupt running statements on {type(dbapi_connection).__name__}")

    def interrupt_active(self) -> None:
        """Interrupts every statement currently running through this connector."""
        with self._active_cond:
            connections = list(self._active.values())
        for dbapi_connection in connections:
            try:
                self.interrupt_connection(dbapi_connection)
            except Exception as e:
                logger.warning(f"Failed to interrupt a running statement on {self}: {e}")
        if connections:
            logger.info(f"Interrupted {len(connections)} running statement(s) on {self}")

    @contextmanager
    def _connection(self, operation: str) -> Iterator[Connection]:
        """A transaction-scoped connection registered as in flight.

        Driver errors raised after cancellation surface as
        OperationCancelledError.
        """
        engine = self._require_engine()
        self.cancellation.raise_if_cancelled(operation)
        with engine.begin() as conn:
            dbapi_connection = conn.connection.driver_connection
            key = id(dbapi_connection)
            with self._active_cond:
                self._active[key] = dbapi_connection
            try:
                # A cancel that landed before registration found nothing to interrupt.
                self.cancellation.raise_if_cancelled(operation)
                yield conn
            except SQLAlchemyError as e:
                if self.cancellation.is_cancelled():
                    raise OperationCancelledError(f"{operation} cancelled: server is shutting down") from e
                raise
            finally:
                with self._active_cond:
                    self._active.pop(key, None)
                    self._active_cond.notify_all()

    def _require_engine(self) -> Engine:
        engine = self.engine
        if engine is None:
            raise GatewayError(f"Not connected to {self}", ErrorCode.NOT_CONNECTED)
        return engine

    def _fetch_rows(self, conn: Connection, stmt, values: Mapping[str, Any], operation: str) -> List[Dict[str, Any]]:
        result = conn.execute(stmt, dict(values))
        if not result.returns_rows:
            return []
        keys = list(result.keys())
        rows: List[Dict[str, Any]] = []
        while True:
            self.cancellation.raise_if_cancelled(operation)
            batch = result.fetchmany(FETCH_BATCH_SIZE)
            if not batch:
                break
            rows.extend(dict(zip(keys, row)) for row in batch)
        return rows

    def _run(self, stmt, values: Optional[Mapping[str, Any]] = None, operation: str = "query") -> List[Dict[str, Any]]:
        """Runs one statement in its own transaction and maps the rows."""
        with self._connection(operation) as conn:
            return self._fetch_rows(conn, stmt, values or {}, operation)

    def _scalar(self, sql: str, values: Optional[Mapping[str, Any]] = None, operation: str = "query") -> Any:
        rows = self._run(text(sql), values, operation)
        if not rows:
            return None
        return next(iter(rows[0].values()))

    def execute_query(self, query: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        stmt, values = bind_named_parameters(query, params)
        try:
            return self._run(stmt, values, "execute_query")
        except GatewayError:
            raise
        except SQLAlchemyError as e:
            logger.warning(f"Query failed on {self}: {e}")
            raise QueryError(f"Failed to execute query: {e}") from e

    # Catalog hooks implemented per backend
    @abstractmethod
    def _list_table_names(self) -> List[str]:
        pass

    @abstractmethod
    def _get_columns(self, table_name: str) -> List[Column]:
        pass

    @abstractmethod
    def _get_table_comment(self, table_name: str) -> str:
        pass

    def qualified_table(self, table_name: str) -> str:
        return quote_identifier(table_name)

    def _get_row_count(self, table_name: str) -> int:
        count = self._scalar(f"SELECT COUNT(*) FROM {self.qualified_table(table_name)}", operation="row_count")
        return int(count or 0)

    def _get_sample_data(self, table_name: str, columns: List[Column]) -> List[Dict[str, Any]]:
        column_list = ", ".join(quote_identifier(col.name) for col in columns) or "*"
        sql = f"SELECT {column_list} FROM {self.qualified_table(table_name)} LIMIT {SAMPLE_ROW_LIMIT}"
        return self._run(text(sql), operation="sample_data")

    def list_tables(self) -> List[Table]:
        try:
            names = sorted(self._list_table_names())
            tables = []
            for name in names:
                row_count = self._get_row_count(name) if self.config.list_row_counts else None
                tables.append(Table(name=name, row_count=row_count))
            return tables
        except GatewayError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to list tables for {self}: {e}")
            raise MetadataError(f"Failed to list tables: {e}") from e

    def get_table_metadata(self, table_name: str) -> TableMetadata:
        try:
            columns = self._get_columns(table_name)
            if not columns:
                raise MetadataError(f"Table '{table_name}' not found or has no columns")
            row_count = self._get_row_count(table_name)
            sample_data = self._get_sample_data(table_name, columns)
        except GatewayError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch metadata for {self}: {table_name}: {e}")
            raise MetadataError(f"Failed to get metadata for table {table_name}: {e}") from e

        try:
            description = self._get_table_comment(table_name) or ""
        except OperationCancelledError:
            raise
        except (SQLAlchemyError, NotImplementedError) as e:
            logger.warning(f"Failed to fetch table comment for {self}: {table_name}: {e}")
            description = ""

        # Sample rows select the columns in declaration order; match by
        # position since dialects may normalize the case of result keys.
        if sample_data:
            first = list(sample_data[0].values())
            for col, value in zip(columns, first):
                col.sample = value

        return TableMetadata(
            name=table_name,
            description=description,
            columns=columns,
            sample_data=sample_data,
            row_count=row_count,
        )

    def enhance_metadata_with_llm(self, metadata: TableMetadata) -> None:
        try:
            metadata.verbose_description = self.enhancer.describe(metadata)
        except Exception as e:
            logger.warning(f"Failed to enhance metadata with LLM for {metadata.name}: {e}")
