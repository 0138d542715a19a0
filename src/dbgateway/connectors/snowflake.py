from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from snowflake.sqlalchemy import URL as snowflake_url
from sqlalchemy import text

from dbgateway.common.errors import ConfigurationError, KeyParseError
from dbgateway.common.logger import get_logger
from .base import BaseSQLAlchemyConnector, quote_identifier
from .models import Column, SnowflakeConfig

logger = get_logger(__name__)

AUTH_PASSWORD = "password"
AUTH_KEY_PAIR = "key_pair"

_LIST_TABLES_SQL = """
    SELECT table_name, table_type
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_catalog = :database
    ORDER BY table_name
"""

_COLUMNS_SQL = """
    SELECT
        c.column_name,
        c.data_type,
        c.comment,
        CASE WHEN pk.column_name IS NOT NULL THEN TRUE ELSE FALSE END AS is_primary_key
    FROM information_schema.columns c
    LEFT JOIN (
        SELECT k.table_catalog, k.table_schema, k.table_name, k.column_name
        FROM information_schema.key_column_usage k
        JOIN information_schema.table_constraints t
          ON t.constraint_catalog = k.constraint_catalog
         AND t.constraint_schema = k.constraint_schema
         AND t.constraint_name = k.constraint_name
        WHERE t.constraint_type = 'PRIMARY KEY'
    ) pk
      ON c.table_catalog = pk.table_catalog
     AND c.table_schema = pk.table_schema
     AND c.table_name = pk.table_name
     AND c.column_name = pk.column_name
    WHERE c.table_name = :table_name
      AND c.table_schema = :schema
      AND c.table_catalog = :database
    ORDER BY c.ordinal_position
"""

_TABLE_COMMENT_SQL = """
    SELECT comment
    FROM information_schema.tables
    WHERE table_name = :table_name
      AND table_schema = :schema
      AND table_catalog = :database
"""


_CANCEL_SESSION_SQL = "SELECT SYSTEM$CANCEL_ALL_QUERIES(:session_id)"


def load_private_key(pem: bytes, passphrase: Optional[bytes] = None) -> bytes:
    """Decodes a PEM private key and re-encodes it as unencrypted PKCS#8 DER.

    Accepts PKCS#1 ("RSA PRIVATE KEY") and PKCS#8 ("PRIVATE KEY" or
    "ENCRYPTED PRIVATE KEY") encodings.

    Raises:
        KeyParseError: If the PEM does not hold a recognized private key.
    """
    try:
        key = serialization.load_pem_private_key(pem, password=passphrase)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyParseError(f"Failed to parse private key: {e}") from e
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _first_value(row: Dict[str, Any]) -> Any:
    return next(iter(row.values()))


class SnowflakeConnector(BaseSQLAlchemyConnector):
    """Snowflake warehouse connector (password or key-pair authentication)."""

    @property
    def settings(self) -> SnowflakeConfig:
        if self.config.snowflake is None:
            raise ConfigurationError("snowflake configuration is required")
        return self.config.snowflake

    @property
    def auth_type(self) -> str:
        auth_type = (self.settings.auth_type or "").lower()
        if auth_type not in (AUTH_PASSWORD, AUTH_KEY_PAIR):
            raise ConfigurationError(f"Unsupported authentication type: {self.settings.auth_type}")
        return auth_type

    def build_url(self) -> str:
        cfg = self.settings
        params = {
            "account": cfg.account,
            "user": cfg.username,
            "database": cfg.database,
            "schema": cfg.schema_name,
            "warehouse": cfg.warehouse,
        }
        if cfg.role:
            params["role"] = cfg.role
        if self.auth_type == AUTH_PASSWORD:
            if cfg.password is None or not cfg.password.get_secret_value():
                raise ConfigurationError("password must be provided for password authentication")
            params["password"] = cfg.password.get_secret_value()
        return snowflake_url(**params)

    def build_connect_args(self) -> Dict[str, Any]:
        if self.auth_type != AUTH_KEY_PAIR:
            return {}
        return {"private_key": self._read_private_key()}

    def _read_private_key(self) -> bytes:
        cfg = self.settings
        has_inline = cfg.private_key is not None and bool(cfg.private_key.get_secret_value())
        has_path = bool(cfg.private_key_path)
        if has_inline == has_path:
            raise ConfigurationError(
                "exactly one of private_key or private_key_path must be provided for key_pair authentication"
            )

        if has_inline:
            pem = cfg.private_key.get_secret_value().encode("utf-8")
        else:
            try:
                pem = Path(cfg.private_key_path).read_bytes()
            except OSError as e:
                raise ConfigurationError(f"Failed to read private key file: {e}") from e

        passphrase = None
        if cfg.private_key_passphrase is not None:
            passphrase = cfg.private_key_passphrase.get_secret_value().encode("utf-8")
        return load_private_key(pem, passphrase)

    def interrupt_connection(self, dbapi_connection: Any) -> None:
        """Cancels the session's running queries from a separate pooled connection."""
        session_id = getattr(dbapi_connection, "session_id", None)
        engine = self.engine
        if session_id is None or engine is None:
            logger.warning(f"{self} cannot interrupt a connection without a session id")
            return
        with engine.connect() as conn:
            conn.execute(text(_CANCEL_SESSION_SQL), {"session_id": session_id})
        logger.info(f"Cancelled running queries of Snowflake session {session_id}")

    def _catalog_params(self, **extra: Any) -> Dict[str, Any]:
        cfg = self.settings
        return {"schema": cfg.schema_name, "database": cfg.database, **extra}

    def qualified_table(self, table_name: str) -> str:
        cfg = self.settings
        return ".".join(quote_identifier(part) for part in (cfg.database, cfg.schema_name, table_name))

    def _list_table_names(self) -> List[str]:
        rows = self._run(text(_LIST_TABLES_SQL), self._catalog_params(), "list_tables")
        names = []
        for row in rows:
            table_name, table_type = list(row.values())[:2]
            # Skip views and other non-table objects
            if str(table_type).upper() != "BASE TABLE":
                continue
            names.append(table_name)
        return names

    def _get_columns(self, table_name: str) -> List[Column]:
        rows = self._run(text(_COLUMNS_SQL), self._catalog_params(table_name=table_name), "columns")
        columns = []
        for row in rows:
            name, data_type, comment, is_primary_key = list(row.values())[:4]
            columns.append(Column(
                name=name,
                type=data_type,
                description=comment or None,
                primary_key=bool(is_primary_key),
            ))
        return columns

    def _get_table_comment(self, table_name: str) -> str:
        rows = self._run(text(_TABLE_COMMENT_SQL), self._catalog_params(table_name=table_name), "table_comment")
        if not rows:
            return ""
        return _first_value(rows[0]) or ""
