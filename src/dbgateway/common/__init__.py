from .errors import (
    ErrorCode,
    ErrorResponse,
    GatewayError,
    ConfigurationError,
    DatabaseConnectionError,
    KeyParseError,
    MetadataError,
    QueryError,
    OperationCancelledError,
    RouteConflictError,
    InvalidRequestError,
    RouteNotFoundError,
)
from .cancellation import CancellationToken

__all__ = [
    "ErrorCode",
    "ErrorResponse",
    "GatewayError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "KeyParseError",
    "MetadataError",
    "QueryError",
    "OperationCancelledError",
    "RouteConflictError",
    "InvalidRequestError",
    "RouteNotFoundError",
    "CancellationToken",
]
