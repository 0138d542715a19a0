import pytest

from dbgateway.common.cancellation import CancellationToken
from dbgateway.common.errors import ErrorCode, GatewayError, MetadataError, OperationCancelledError, QueryError
from dbgateway.connectors.generic import SQLAlchemyConnector


@pytest.fixture
def connector(sqlite_config):
    connector = SQLAlchemyConnector(sqlite_config, CancellationToken())
    connector.connect()
    yield connector
    connector.disconnect()


def test_list_tables_excludes_views_and_counts_rows(connector):
    # Validates listing because views have no generated CRUD surface.
    # Act
    tables = connector.list_tables()

    # Assert
    assert [(t.name, t.row_count) for t in tables] == [("customers", 3), ("orders", 2)]


def test_list_tables_can_skip_row_counts(sqlite_config):
    # Validates optional counting because COUNT(*) scans are expensive on large schemas.
    # Arrange
    config = sqlite_config.model_copy(update={"list_row_counts": False})
    connector = SQLAlchemyConnector(config)
    connector.connect()

    # Act
    tables = connector.list_tables()
    connector.disconnect()

    # Assert
    assert [t.row_count for t in tables] == [None, None]


def test_table_metadata_reports_keys_and_samples(connector):
    # Validates introspection because generation depends on key flags and column order.
    # Act
    metadata = connector.get_table_metadata("orders")

    # Assert
    assert [c.name for c in metadata.columns] == ["order_id", "customer_id", "total"]
    assert metadata.columns[0].primary_key is True
    assert metadata.columns[1].foreign_key is True
    assert metadata.columns[1].references == "customers.id"
    assert metadata.row_count == 2
    assert metadata.sample_data[0] == {"order_id": 10, "customer_id": 1, "total": 250.0}
    assert metadata.columns[2].sample == 250.0
    assert metadata.description == ""


def test_unknown_table_is_a_metadata_error(connector):
    # Validates missing tables because they must not produce empty endpoint sets.
    # Act / Assert
    with pytest.raises(MetadataError):
        connector.get_table_metadata("nope")


def test_execute_query_binds_named_and_list_parameters(connector):
    # Validates parameter binding because templates use `:name` placeholders only.
    # Act
    rows = connector.execute_query(
        'SELECT "name" FROM "customers" WHERE "id" IN :ids AND "email" IS NOT :email ORDER BY "id"',
        {"ids": [1, 3], "email": None},
    )

    # Assert
    assert rows == [{"name": "Ada"}]


def test_execute_query_missing_parameter_sends_nothing(connector):
    # Validates unresolved parameters because a partial statement must never execute.
    # Act / Assert
    with pytest.raises(QueryError):
        connector.execute_query('DELETE FROM "customers" WHERE "id" = :id', {})
    assert connector.list_tables()[0].row_count == 3


def test_dml_statements_commit(connector):
    # Validates write routes because each statement runs in its own committed transaction.
    # Arrange
    connector.execute_query(
        'INSERT INTO "customers" ("id", "name", "email") VALUES (:id, :name, :email)',
        {"id": 4, "name": "Barbara", "email": "b@example.com"},
    )

    # Act
    rows = connector.execute_query('SELECT "name" FROM "customers" WHERE "id" = :id', {"id": 4})

    # Assert
    assert rows == [{"name": "Barbara"}]


def test_backend_errors_become_query_errors(connector):
    # Validates error mapping because driver exceptions must not leak to callers.
    # Act / Assert
    with pytest.raises(QueryError) as excinfo:
        connector.execute_query("SELECT * FROM missing_table")
    assert "missing_table" in excinfo.value.message


def test_cancelled_token_stops_operations(connector):
    # Validates cancellation because a stopping server must not start new database work.
    # Arrange
    connector.cancellation.cancel()

    # Act / Assert
    with pytest.raises(OperationCancelledError):
        connector.execute_query("SELECT 1")
    with pytest.raises(OperationCancelledError):
        connector.list_tables()


def test_operations_require_connection(sqlite_config):
    # Validates the not-connected state because no pool exists before connect.
    # Arrange
    connector = SQLAlchemyConnector(sqlite_config)

    # Act / Assert
    with pytest.raises(GatewayError) as excinfo:
        connector.execute_query("SELECT 1")
    assert excinfo.value.error_code == ErrorCode.NOT_CONNECTED
    connector.disconnect()


def test_in_memory_database_shares_one_connection():
    # Validates in-memory SQLite because separate pool connections would see separate databases.
    # Arrange
    from dbgateway.connectors.models import DatabaseConfig, SQLAlchemyConfig

    connector = SQLAlchemyConnector(DatabaseConfig(type="sqlalchemy", sqlalchemy=SQLAlchemyConfig(url="sqlite://")))
    connector.connect()
    connector.execute_query("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
    connector.execute_query("INSERT INTO t (id, v) VALUES (:id, :v)", {"id": 1, "v": "x"})

    # Act
    tables = connector.list_tables()
    connector.disconnect()

    # Assert
    assert [(t.name, t.row_count) for t in tables] == [("t", 1)]
