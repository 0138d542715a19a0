from unittest.mock import MagicMock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from dbgateway.common.errors import ConfigurationError
from dbgateway.connectors.generic import SQLAlchemyConnector
from dbgateway.connectors.models import DatabaseConfig, SQLAlchemyConfig
from dbgateway.llm.enhancer import (
    ChatModelMetadataEnhancer,
    MetadataEnhancer,
    TemplateMetadataEnhancer,
    build_enhancer,
    build_evidence,
)
from dbgateway.llm.models import LLMConfig

from conftest import users_metadata


def test_template_description_lists_columns_and_key():
    # Validates the default description because it is used whenever no model is configured.
    # Arrange
    metadata = users_metadata()

    # Act
    text = TemplateMetadataEnhancer().describe(metadata)

    # Assert
    assert text == (
        "Table users contains 2 columns and 2 rows. "
        "Columns include: id (serial) [Primary Key], email (text)"
    )


def test_chat_model_enhancer_returns_stripped_model_text():
    # Validates the chat chain because model replies often carry trailing whitespace.
    # Arrange
    llm = FakeListChatModel(responses=["  Stores registered users keyed by id.\n"])
    enhancer = ChatModelMetadataEnhancer(llm)

    # Act
    text = enhancer.describe(users_metadata())

    # Assert
    assert text == "Stores registered users keyed by id."
    assert isinstance(enhancer, MetadataEnhancer)


def test_evidence_carries_columns_and_samples():
    # Validates prompt evidence because the model must only describe what it was shown.
    # Arrange
    metadata = users_metadata()
    metadata.sample_data = [{"id": 1, "email": "a@example.com"}]

    # Act
    evidence = build_evidence(metadata)

    # Assert
    assert evidence["table"] == "users"
    assert [c["name"] for c in evidence["columns"]] == ["id", "email"]
    assert evidence["columns"][0]["primary_key"] is True
    assert evidence["sample_rows"] == [{"id": 1, "email": "a@example.com"}]


def test_build_enhancer_defaults_to_template():
    # Validates provider selection because no model is the safe default.
    # Act
    enhancer = build_enhancer(LLMConfig())

    # Assert
    assert isinstance(enhancer, TemplateMetadataEnhancer)


def test_build_enhancer_rejects_unknown_provider():
    # Validates provider checks because a typo must not silently disable descriptions.
    # Arrange
    config = LLMConfig.model_construct(provider="bedrock")

    # Act / Assert
    with pytest.raises(ConfigurationError):
        build_enhancer(config)


def test_enhancement_failure_is_not_fatal(caplog):
    # Validates LLM containment because a model outage must not fail metadata requests.
    # Arrange
    enhancer = MagicMock()
    enhancer.describe.side_effect = RuntimeError("rate limited")
    connector = SQLAlchemyConnector(
        DatabaseConfig(type="sqlalchemy", sqlalchemy=SQLAlchemyConfig(url="sqlite://")),
        enhancer=enhancer,
    )
    metadata = users_metadata()

    # Act
    with caplog.at_level("WARNING"):
        connector.enhance_metadata_with_llm(metadata)

    # Assert
    assert metadata.verbose_description is None
    assert "rate limited" in caplog.text


def test_enhancement_sets_verbose_description():
    # Validates in-place enhancement because callers read the same metadata object.
    # Arrange
    connector = SQLAlchemyConnector(DatabaseConfig(type="sqlalchemy", sqlalchemy=SQLAlchemyConfig(url="sqlite://")))
    metadata = users_metadata()

    # Act
    connector.enhance_metadata_with_llm(metadata)

    # Assert
    assert metadata.verbose_description.startswith("Table users contains 2 columns")
