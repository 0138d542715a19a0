from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from dbgateway.common.errors import (
    ConfigurationError,
    ErrorCode,
    GatewayError,
    InvalidRequestError,
    RouteNotFoundError,
)
from dbgateway.common.logger import get_logger
from dbgateway.connectors.interfaces import DatabaseConnector
from dbgateway.connectors.models import Table, TableMetadata
from dbgateway.generation.generator import APIGenerator
from dbgateway.generation.models import EndpointDescriptor
from .models import GenerateAPIRequest, QueryRequest
from .registry import EndpointRegistry, RouteMatch, extract_parameters

logger = get_logger(__name__)


class DatabaseService:
    """Request-level operations over one connector and its endpoint registry."""

    def __init__(
        self,
        connector: Optional[DatabaseConnector],
        registry: EndpointRegistry,
        generator: APIGenerator,
        enable_llm: bool = False,
    ):
        self.connector = connector
        self.registry = registry
        self.generator = generator
        self.enable_llm = enable_llm
        self._builtins: Dict[tuple, Callable[[Dict[str, Any], Optional[Any]], Any]] = {
            ("GET", "/tables"): self._handle_list_tables,
            ("GET", "/tables/:tableName"): self._handle_table_metadata,
            ("POST", "/query"): self._handle_query,
        }

    def _require_connector(self) -> DatabaseConnector:
        if self.connector is None:
            raise ConfigurationError("database connector is not initialized")
        return self.connector

    def list_tables(self) -> List[Table]:
        return self._require_connector().list_tables()

    def get_table_metadata(self, table_name: str) -> TableMetadata:
        connector = self._require_connector()
        metadata = connector.get_table_metadata(table_name)
        if self.enable_llm:
            connector.enhance_metadata_with_llm(metadata)
        return metadata

    def execute_query(self, request: QueryRequest) -> List[Dict[str, Any]]:
        return self._require_connector().execute_query(request.query, request.params)

    def generate_api(self, request: GenerateAPIRequest) -> List[EndpointDescriptor]:
        """Generates descriptors and installs each one as a live route."""
        descriptors = self.generator.generate(request.tables)
        self.registry.register(descriptors)
        return descriptors

    def dispatch(
        self,
        method: str,
        path: str,
        query_params: Optional[Mapping[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> Any:
        """Resolves a request against the registry and executes it."""
        match = self.registry.resolve(method, path)
        if match is None:
            raise RouteNotFoundError(f"No endpoint registered for {method.upper()} /{path.strip('/')}")

        descriptor = match.descriptor
        if descriptor.is_builtin:
            return self._dispatch_builtin(match, query_params, body)

        if body is not None and not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        params = extract_parameters(match, query_params, body)
        logger.debug(f"Dispatching {descriptor.method} {descriptor.path} with params {sorted(params)}")
        return self._require_connector().execute_query(descriptor.query, params)

    def _dispatch_builtin(self, match: RouteMatch, query_params: Optional[Mapping[str, Any]], body: Optional[Any]) -> Any:
        handler = self._builtins.get(match.descriptor.key)
        if handler is None:
            raise GatewayError(
                f"No built-in handler for {match.descriptor.method} {match.descriptor.path}",
                ErrorCode.ROUTE_NOT_FOUND,
            )
        params = extract_parameters(match, query_params)
        return handler(params, body)

    def _handle_list_tables(self, params: Dict[str, Any], body: Optional[Any]) -> List[Table]:
        return self.list_tables()

    def _handle_table_metadata(self, params: Dict[str, Any], body: Optional[Any]) -> TableMetadata:
        return self.get_table_metadata(params["tableName"])

    def _handle_query(self, params: Dict[str, Any], body: Optional[Any]) -> List[Dict[str, Any]]:
        try:
            request = QueryRequest.model_validate(body if body is not None else {})
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid request: {e}") from e
        return self.execute_query(request)
