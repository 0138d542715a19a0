from unittest.mock import MagicMock

import pytest

from dbgateway.common.errors import ConfigurationError, MetadataError, OperationCancelledError
from dbgateway.generation.generator import APIGenerator, endpoints_for_table, metadata_endpoints
from dbgateway.generation.models import APIGeneratorConfig

from conftest import FakeConnector, logs_metadata, users_metadata


def test_generation_is_deterministic_for_identical_metadata():
    # Validates purity because regenerated routes must be identical to the installed ones.
    # Arrange
    first_metadata = users_metadata()
    second_metadata = users_metadata()

    # Act
    first = endpoints_for_table(first_metadata)
    second = endpoints_for_table(second_metadata)

    # Assert
    assert first == second
    assert [e.model_dump() for e in first] == [e.model_dump() for e in second]


def test_generate_without_tables_covers_every_listed_table(fake_connector):
    # Validates the all-tables default because an empty request means the whole schema.
    # Arrange
    generator = APIGenerator(fake_connector, APIGeneratorConfig(include_metadata=False))

    # Act
    endpoints = generator.generate()

    # Assert
    paths = {(e.method, e.path) for e in endpoints}
    assert ("GET", "/logs") in paths
    assert ("GET", "/users/:id") in paths
    assert len(endpoints) == 2 + 5


def test_generate_appends_metadata_endpoints(fake_connector):
    # Validates built-in endpoints because they are served alongside the generated ones.
    # Arrange
    generator = APIGenerator(fake_connector)

    # Act
    endpoints = generator.generate(["logs"])

    # Assert
    builtin = [e for e in endpoints if e.is_builtin]
    assert [(e.method, e.path) for e in builtin] == [
        ("GET", "/tables"),
        ("GET", "/tables/:tableName"),
        ("POST", "/query"),
    ]
    assert builtin == metadata_endpoints()


def test_generate_skips_table_whose_metadata_fails(fake_connector, caplog):
    # Validates per-table containment because one broken table must not block the rest.
    # Arrange
    generator = APIGenerator(fake_connector, APIGeneratorConfig(include_metadata=False))

    # Act
    with caplog.at_level("WARNING"):
        endpoints = generator.generate(["missing", "logs"])

    # Assert
    assert [(e.method, e.path) for e in endpoints] == [("GET", "/logs"), ("POST", "/logs")]
    assert "missing" in caplog.text


def test_generate_propagates_listing_failure():
    # Validates listing errors because without a table list there is nothing to skip to.
    # Arrange
    connector = MagicMock()
    connector.list_tables.side_effect = MetadataError("Failed to list tables: boom")
    generator = APIGenerator(connector)

    # Act / Assert
    with pytest.raises(MetadataError):
        generator.generate()


def test_generate_does_not_swallow_cancellation(fake_connector):
    # Validates cancellation because a stopping server must not keep generating.
    # Arrange
    fake_connector.cancellation.cancel()
    generator = APIGenerator(fake_connector)

    # Act / Assert
    with pytest.raises(OperationCancelledError):
        generator.generate(["users", "logs"])


def test_generate_requires_connector():
    # Validates the missing-connector guard because generation needs live metadata.
    # Arrange
    generator = APIGenerator(None)

    # Act / Assert
    with pytest.raises(ConfigurationError):
        generator.generate(["users"])


def test_llm_enhancement_runs_only_when_enabled():
    # Validates the LLM toggle because descriptions cost a model call per table.
    # Arrange
    disabled = FakeConnector({"users": users_metadata()})
    enabled = FakeConnector({"users": users_metadata()})

    # Act
    APIGenerator(disabled, APIGeneratorConfig(enable_llm=False)).generate(["users"])
    APIGenerator(enabled, APIGeneratorConfig(enable_llm=True)).generate(["users"])

    # Assert
    assert disabled.enhance_calls == 0
    assert enabled.enhance_calls == 1


def test_descriptor_keys_use_upper_case_method():
    # Validates the registry key because lookups normalize the request method.
    # Arrange
    endpoints = endpoints_for_table(logs_metadata())

    # Act
    keys = [e.key for e in endpoints]

    # Assert
    assert keys == [("GET", "/logs"), ("POST", "/logs")]
    assert not any(e.is_builtin for e in endpoints)
