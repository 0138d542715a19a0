"""Pure functions turning table metadata into SQL templates.

Identifiers are wrapped in double quotes and nothing else is escaped; values
only ever reach the database as bound `:name` parameters.
"""
from typing import Dict, List, Optional, Sequence

from dbgateway.connectors.base import quote_identifier
from dbgateway.connectors.models import Column

AUTO_INCREMENT_MARKERS = ("identity", "autoincrement", "serial")

DEFAULT_LIST_LIMIT = 100
DEFAULT_LIST_OFFSET = 0


def is_auto_increment_type(column_type: str) -> bool:
    """Best-effort guess whether the backend generates this column's values."""
    lowered = (column_type or "").lower()
    return any(marker in lowered for marker in AUTO_INCREMENT_MARKERS)


def infer_primary_key(columns: Sequence[Column]) -> Optional[Column]:
    """First column flagged primary-key in declaration order."""
    for col in columns:
        if col.primary_key:
            return col
    return None


def insertable_columns(columns: Sequence[Column], primary_key: Optional[Column]) -> List[Column]:
    return [
        col for col in columns
        if not (primary_key is not None and col.name == primary_key.name and is_auto_increment_type(col.type))
    ]


def updatable_columns(columns: Sequence[Column], primary_key: Column) -> List[Column]:
    return [col for col in columns if col.name != primary_key.name]


def build_list_query(table_name: str) -> str:
    return f"SELECT * FROM {quote_identifier(table_name)} LIMIT :limit OFFSET :offset"


def build_get_query(table_name: str, primary_key: str) -> str:
    return f"SELECT * FROM {quote_identifier(table_name)} WHERE {quote_identifier(primary_key)} = :{primary_key}"


def build_delete_query(table_name: str, primary_key: str) -> str:
    return f"DELETE FROM {quote_identifier(table_name)} WHERE {quote_identifier(primary_key)} = :{primary_key}"


def build_insert_query(table_name: str, columns: Sequence[Column]) -> str:
    if not columns:
        return f"INSERT INTO {quote_identifier(table_name)} DEFAULT VALUES"
    names = ", ".join(quote_identifier(col.name) for col in columns)
    values = ", ".join(f":{col.name}" for col in columns)
    return f"INSERT INTO {quote_identifier(table_name)} ({names}) VALUES ({values})"


def build_update_query(table_name: str, columns: Sequence[Column], primary_key: str) -> str:
    set_clause = ", ".join(f"{quote_identifier(col.name)} = :{col.name}" for col in columns)
    return (
        f"UPDATE {quote_identifier(table_name)} SET {set_clause} "
        f"WHERE {quote_identifier(primary_key)} = :{primary_key}"
    )


def column_parameters(columns: Sequence[Column]) -> Dict[str, str]:
    """Parameter documentation: the column comment, else the column name."""
    return {col.name: col.description or col.name for col in columns}


def list_parameters() -> Dict[str, str]:
    return {
        "limit": f"Number of records to return (default: {DEFAULT_LIST_LIMIT})",
        "offset": f"Number of records to skip (default: {DEFAULT_LIST_OFFSET})",
    }
