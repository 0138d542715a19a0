from __future__ import annotations

from importlib.metadata import entry_points
from threading import RLock
from typing import Dict, Optional, Type

from dbgateway.common.cancellation import CancellationToken
from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import get_logger
from dbgateway.llm.enhancer import MetadataEnhancer
from .generic import SQLAlchemyConnector
from .interfaces import DatabaseConnector
from .models import DatabaseConfig
from .snowflake import SnowflakeConnector

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "dbgateway.connectors"

_BUILTIN_CONNECTORS: Dict[str, Type[DatabaseConnector]] = {
    "snowflake": SnowflakeConnector,
    "sqlalchemy": SQLAlchemyConnector,
}

_registered: Dict[str, Type[DatabaseConnector]] = {}
_lock = RLock()


def discover_connectors() -> Dict[str, Type[DatabaseConnector]]:
    """Discovers installed connectors via 'dbgateway.connectors' entry points.

    Returns:
        Dict[str, Type[DatabaseConnector]]: Dict mapping backend type (e.g., 'snowflake')
            to the connector class.
    """
    connectors = {}
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            connectors[ep.name] = ep.load()
        except Exception as e:
            logger.error(f"Failed to load connector {ep.name}: {e}")
    return connectors


def register_connector(backend_type: str, connector_cls: Type[DatabaseConnector]) -> None:
    """Registers a connector class for a backend type in this process."""
    with _lock:
        _registered[backend_type.lower()] = connector_cls


def available_connectors() -> Dict[str, Type[DatabaseConnector]]:
    connectors = dict(discover_connectors())
    connectors.update(_BUILTIN_CONNECTORS)
    with _lock:
        connectors.update(_registered)
    return connectors


def create_connector(
    config: Optional[DatabaseConfig],
    cancellation: Optional[CancellationToken] = None,
    enhancer: Optional[MetadataEnhancer] = None,
) -> DatabaseConnector:
    """
    Factory method to instantiate the connector selected by `config.type`.

    No network activity happens here; connecting is the caller's job.

    Raises:
        ConfigurationError: If config is missing, the type is unknown, or the
            section for the selected backend is not populated.
    """
    if config is None:
        raise ConfigurationError("database configuration is required")

    backend_type = (config.type or "").lower()
    connectors = available_connectors()
    if backend_type not in connectors:
        raise ConfigurationError(
            f"unsupported database type: '{config.type}'. "
            f"Available: {sorted(connectors.keys())}."
        )

    # Builtin backends must have exactly the section named by the discriminator.
    if backend_type in _BUILTIN_CONNECTORS:
        populated = [name for name in _BUILTIN_CONNECTORS if getattr(config, name, None) is not None]
        if populated != [backend_type]:
            raise ConfigurationError(
                f"database type '{backend_type}' requires exactly the '{backend_type}' section, "
                f"found: {populated or 'none'}"
            )

    connector_cls = connectors[backend_type]
    kwargs = {"cancellation": cancellation}
    if enhancer is not None:
        kwargs["enhancer"] = enhancer
    connector = connector_cls(config, **kwargs)
    logger.info(f"Created {connector}")
    return connector
