from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standardized error codes for the gateway."""
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    KEY_PARSE_ERROR = "KEY_PARSE_ERROR"
    METADATA_ERROR = "METADATA_ERROR"
    QUERY_ERROR = "QUERY_ERROR"
    CANCELLED = "CANCELLED"
    ROUTE_CONFLICT = "ROUTE_CONFLICT"
    NOT_CONNECTED = "NOT_CONNECTED"
    INVALID_REQUEST = "INVALID_REQUEST"
    ROUTE_NOT_FOUND = "ROUTE_NOT_FOUND"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class GatewayError(Exception):
    """Base class for every error raised by the gateway core.

    Attributes:
        error_code (ErrorCode): The standardized error code.
        message (str): A human-readable error message.
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code

    def to_response(self) -> "ErrorResponse":
        return ErrorResponse(error_code=self.error_code.value, message=self.message)


class ConfigurationError(GatewayError):
    """Bad or missing configuration, or an unsupported backend."""
    error_code = ErrorCode.CONFIGURATION_ERROR


class DatabaseConnectionError(GatewayError):
    """Establishing the pooled connection failed (network or authentication)."""
    error_code = ErrorCode.CONNECTION_ERROR


class KeyParseError(GatewayError):
    """A key-pair private key could not be decoded."""
    error_code = ErrorCode.KEY_PARSE_ERROR


class MetadataError(GatewayError):
    """Introspecting a table (columns, row count, listing) failed."""
    error_code = ErrorCode.METADATA_ERROR


class QueryError(GatewayError):
    """Malformed template, unresolved parameter or backend execution failure."""
    error_code = ErrorCode.QUERY_ERROR


class OperationCancelledError(GatewayError):
    """The owning server's cancellation signal fired."""
    error_code = ErrorCode.CANCELLED


class RouteConflictError(GatewayError):
    """A (method, path) key is already registered and the policy rejects replacement."""
    error_code = ErrorCode.ROUTE_CONFLICT


class InvalidRequestError(GatewayError):
    """The request body or parameters are malformed."""
    error_code = ErrorCode.INVALID_REQUEST


class RouteNotFoundError(GatewayError):
    """No registered endpoint matches the request."""
    error_code = ErrorCode.ROUTE_NOT_FOUND


class ErrorResponse(BaseModel):
    """Structured body of every error response."""
    model_config = ConfigDict(extra="ignore")

    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
