from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from dbgateway.common.settings import settings


class Table(BaseModel):
    name: str
    row_count: Optional[int] = None


class Column(BaseModel):
    name: str
    type: str
    description: Optional[str] = None
    primary_key: bool = False
    foreign_key: bool = False
    references: Optional[str] = None
    sample: Optional[Any] = None


class TableMetadata(BaseModel):
    """Snapshot of one table taken by a single introspection call."""

    name: str
    description: str = ""
    columns: List[Column] = Field(default_factory=list)
    sample_data: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    verbose_description: Optional[str] = None


class PoolConfig(BaseModel):
    """Connection pool bounds for a connector.

    Attributes:
        max_open: Maximum number of simultaneously open connections.
        max_idle: Connections kept open while idle.
        max_lifetime_sec: Age after which a connection is recycled.
    """
    max_open: int = Field(default_factory=lambda: settings.pool_max_open, ge=1)
    max_idle: int = Field(default_factory=lambda: settings.pool_max_idle, ge=0)
    max_lifetime_sec: int = Field(default_factory=lambda: settings.pool_max_lifetime_sec, ge=1)


class SnowflakeConfig(BaseModel):
    account: str
    username: str
    database: str
    schema_name: str = Field(alias="schema")
    warehouse: str
    role: Optional[str] = None
    auth_type: str = "password"
    password: Optional[SecretStr] = None
    private_key: Optional[SecretStr] = None
    private_key_path: Optional[str] = None
    private_key_passphrase: Optional[SecretStr] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SQLAlchemyConfig(BaseModel):
    """Any SQLAlchemy-supported database reachable through a URL."""
    url: SecretStr
    schema_name: Optional[str] = Field(default=None, alias="schema")
    connect_args: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    `type` selects which backend section must be populated.
    """
    type: str
    snowflake: Optional[SnowflakeConfig] = None
    sqlalchemy: Optional[SQLAlchemyConfig] = None
    pool: PoolConfig = Field(default_factory=PoolConfig)
    list_row_counts: bool = Field(
        default=True,
        description="Compute COUNT(*) per table when listing; a full scan per table."
    )

    model_config = ConfigDict(extra="ignore")
