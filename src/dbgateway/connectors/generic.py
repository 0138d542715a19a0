from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from sqlalchemy import inspect
from sqlalchemy.engine import URL, make_url
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import ArgumentError
from sqlalchemy.pool import StaticPool

from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import get_logger
from .base import BaseSQLAlchemyConnector, quote_identifier
from .models import Column

logger = get_logger(__name__)


class SQLAlchemyConnector(BaseSQLAlchemyConnector):
    """
    Connector for any database SQLAlchemy can reach through a URL
    (SQLite, PostgreSQL, MySQL...). Catalog data comes from the
    SQLAlchemy inspector.
    """

    @property
    def settings(self):
        if self.config.sqlalchemy is None:
            raise ConfigurationError("sqlalchemy configuration is required")
        return self.config.sqlalchemy

    def build_url(self) -> URL:
        try:
            return make_url(self.settings.url.get_secret_value())
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid SQLAlchemy URL: {e}") from e

    def build_connect_args(self) -> Dict[str, Any]:
        return dict(self.settings.connect_args)

    def pool_options(self) -> Dict[str, Any]:
        url = self.build_url()
        if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
            # One shared connection, otherwise each checkout sees a new empty database.
            return {"poolclass": StaticPool}
        return super().pool_options()

    def qualified_table(self, table_name: str) -> str:
        schema = self.settings.schema_name
        if schema:
            return f"{quote_identifier(schema)}.{quote_identifier(table_name)}"
        return quote_identifier(table_name)

    @contextmanager
    def _inspector(self, operation: str) -> Iterator[Inspector]:
        with self._connection(operation) as conn:
            yield inspect(conn)

    def _list_table_names(self) -> List[str]:
        # get_table_names() excludes views
        with self._inspector("list_tables") as inspector:
            return inspector.get_table_names(schema=self.settings.schema_name)

    def _get_columns(self, table_name: str) -> List[Column]:
        schema = self.settings.schema_name
        with self._inspector("columns") as inspector:
            pk = inspector.get_pk_constraint(table_name, schema=schema) or {}
            foreign_keys = inspector.get_foreign_keys(table_name, schema=schema)
            column_info = inspector.get_columns(table_name, schema=schema)
        pk_columns = set(pk.get("constrained_columns") or [])

        references: Dict[str, str] = {}
        for fk in foreign_keys:
            for local, remote in zip(fk["constrained_columns"], fk["referred_columns"]):
                references[local] = f"{fk['referred_table']}.{remote}"

        columns = []
        for col_info in column_info:
            name = col_info["name"]
            columns.append(Column(
                name=name,
                type=str(col_info["type"]),
                description=col_info.get("comment"),
                primary_key=name in pk_columns,
                foreign_key=name in references,
                references=references.get(name),
            ))
        return columns

    def _get_table_comment(self, table_name: str) -> str:
        with self._inspector("table_comment") as inspector:
            comment = inspector.get_table_comment(table_name, schema=self.settings.schema_name)
        return comment.get("text") or ""
