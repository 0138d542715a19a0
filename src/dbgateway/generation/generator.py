from typing import List, Optional, Sequence

from dbgateway.common.errors import ConfigurationError, GatewayError, OperationCancelledError
from dbgateway.common.logger import get_logger
from dbgateway.connectors.interfaces import DatabaseConnector
from dbgateway.connectors.models import TableMetadata
from . import query_builder as qb
from .models import APIGeneratorConfig, EndpointDescriptor

logger = get_logger(__name__)


def metadata_endpoints() -> List[EndpointDescriptor]:
    """Fixed descriptors served by built-in handlers (empty query)."""
    return [
        EndpointDescriptor(
            method="GET",
            path="/tables",
            description="List all available tables",
        ),
        EndpointDescriptor(
            method="GET",
            path="/tables/:tableName",
            description="Get metadata for a specific table",
            parameters={"tableName": "Name of the table"},
        ),
        EndpointDescriptor(
            method="POST",
            path="/query",
            description="Execute a custom SQL query",
            parameters={
                "query": "SQL query to execute",
                "params": "Parameters for the query",
            },
        ),
    ]


def endpoints_for_table(metadata: TableMetadata) -> List[EndpointDescriptor]:
    """Derives the CRUD descriptors for one table from its metadata.

    Deterministic: identical metadata yields identical descriptors.
    """
    table = metadata.name
    base_path = f"/{table}"
    pk_column = qb.infer_primary_key(metadata.columns)

    flagged = [col.name for col in metadata.columns if col.primary_key]
    if len(flagged) > 1:
        logger.warning(
            f"Table {table} has a composite key {flagged}; "
            f"only '{flagged[0]}' is used as the record identifier"
        )

    endpoints = [
        EndpointDescriptor(
            method="GET",
            path=base_path,
            description=f"List records from {table} table",
            query=qb.build_list_query(table),
            parameters=qb.list_parameters(),
            defaults={"limit": qb.DEFAULT_LIST_LIMIT, "offset": qb.DEFAULT_LIST_OFFSET},
        )
    ]

    if pk_column is not None:
        pk = pk_column.name
        item_path = f"{base_path}/:{pk}"
        endpoints.append(EndpointDescriptor(
            method="GET",
            path=item_path,
            description=f"Get a record from {table} by ID",
            query=qb.build_get_query(table, pk),
            parameters={pk: f"ID of the {table} record"},
        ))
        endpoints.append(EndpointDescriptor(
            method="DELETE",
            path=item_path,
            description=f"Delete a record from {table} by ID",
            query=qb.build_delete_query(table, pk),
            parameters={pk: f"ID of the {table} record to delete"},
        ))

    insert_columns = qb.insertable_columns(metadata.columns, pk_column)
    endpoints.append(EndpointDescriptor(
        method="POST",
        path=base_path,
        description=f"Create a new record in {table} table",
        query=qb.build_insert_query(table, insert_columns),
        parameters=qb.column_parameters(insert_columns),
    ))

    if pk_column is not None:
        pk = pk_column.name
        set_columns = qb.updatable_columns(metadata.columns, pk_column)
        if set_columns:
            endpoints.append(EndpointDescriptor(
                method="PUT",
                path=f"{base_path}/:{pk}",
                description=f"Update a record in {table} table",
                query=qb.build_update_query(table, set_columns, pk),
                parameters=qb.column_parameters([*set_columns, pk_column]),
            ))
        else:
            logger.warning(f"Table {table} has no columns besides its key; skipping update endpoint")

    return endpoints


class APIGenerator:
    """Builds endpoint descriptors for tables of a connected store."""

    def __init__(self, connector: Optional[DatabaseConnector], config: Optional[APIGeneratorConfig] = None):
        self.connector = connector
        self.config = config or APIGeneratorConfig()

    def generate(self, tables: Optional[Sequence[str]] = None) -> List[EndpointDescriptor]:
        """Generates descriptors for `tables`, or for every table when empty.

        A table whose metadata cannot be fetched is logged and skipped.

        Raises:
            ConfigurationError: If no connector is configured.
            MetadataError: If tables must be listed and listing fails.
            OperationCancelledError: If the server is shutting down.
        """
        if self.connector is None:
            raise ConfigurationError("database connector is not initialized")

        table_names = list(tables or [])
        if not table_names:
            table_names = [table.name for table in self.connector.list_tables()]

        endpoints: List[EndpointDescriptor] = []
        for table_name in table_names:
            try:
                endpoints.extend(self._generate_for_table(table_name))
            except OperationCancelledError:
                raise
            except GatewayError as e:
                logger.warning(f"Failed to generate endpoints for table {table_name}: {e}")
                continue

        if self.config.include_metadata:
            endpoints.extend(metadata_endpoints())

        logger.info(f"Generated {len(endpoints)} endpoints for {len(table_names)} requested tables")
        return endpoints

    def _generate_for_table(self, table_name: str) -> List[EndpointDescriptor]:
        metadata = self.connector.get_table_metadata(table_name)
        if self.config.enable_llm:
            self.connector.enhance_metadata_with_llm(metadata)
        return endpoints_for_table(metadata)
