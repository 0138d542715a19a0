from __future__ import annotations

import json
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import get_logger
from dbgateway.connectors.models import TableMetadata
from .models import LLMConfig

logger = get_logger(__name__)


@runtime_checkable
class MetadataEnhancer(Protocol):
    """Produces a verbose, human-oriented description of a table."""

    def describe(self, metadata: TableMetadata) -> str:
        ...


class TemplateMetadataEnhancer:
    """Deterministic description built from names, types and counts only."""

    def describe(self, metadata: TableMetadata) -> str:
        description = (
            f"Table {metadata.name} contains {len(metadata.columns)} columns "
            f"and {metadata.row_count} rows. "
        )
        parts = []
        for col in metadata.columns:
            part = f"{col.name} ({col.type})"
            if col.primary_key:
                part += " [Primary Key]"
            parts.append(part)
        return description + "Columns include: " + ", ".join(parts)


DESCRIPTION_PROMPT = """You are documenting a database table for API consumers.
Use ONLY the evidence provided. Describe what the table stores, the meaning of
its key columns and how records are identified. Answer in one short paragraph.

Evidence (JSON):
{evidence_json}
"""


def build_evidence(metadata: TableMetadata) -> Dict[str, Any]:
    return {
        "table": metadata.name,
        "comment": metadata.description,
        "row_count": metadata.row_count,
        "columns": [
            {
                "name": col.name,
                "type": col.type,
                "description": col.description,
                "primary_key": col.primary_key,
                "references": col.references,
            }
            for col in metadata.columns
        ],
        "sample_rows": metadata.sample_data,
    }


class ChatModelMetadataEnhancer:
    """Asks a langchain chat model to describe the table."""

    def __init__(self, llm):
        self.llm = llm
        self._chain = ChatPromptTemplate.from_template(DESCRIPTION_PROMPT) | llm | StrOutputParser()

    def describe(self, metadata: TableMetadata) -> str:
        evidence = json.dumps(build_evidence(metadata), default=str)
        return self._chain.invoke({"evidence_json": evidence}).strip()


def build_enhancer(config: Optional[LLMConfig] = None) -> MetadataEnhancer:
    """Creates the enhancer selected by configuration."""
    config = config or LLMConfig()
    if config.provider == "template":
        return TemplateMetadataEnhancer()
    if config.provider == "openai":
        try:
            from langchain_openai import ChatOpenAI
        except ImportError:
            raise ImportError("langchain-openai is not installed. Please install it using 'pip install db-api-gateway[openai]'")

        api_key = config.api_key.get_secret_value() if config.api_key else None
        llm = ChatOpenAI(model=config.model, api_key=api_key, temperature=config.temperature, seed=42)
        logger.info(f"Using OpenAI model '{config.model}' for table descriptions")
        return ChatModelMetadataEnhancer(llm)
    raise ConfigurationError(f"Unsupported LLM provider: {config.provider}")
