from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from dbgateway.common.errors import ConfigurationError
from dbgateway.common.settings import settings
from dbgateway.connectors.models import DatabaseConfig
from dbgateway.llm.models import LLMConfig

NO_DATABASE = ("", "none")


class ServerConfig(BaseModel):
    """
    Configuration for one database-backed server.

    Attributes:
        name: Server name reported by `server_info()`.
        type: Server type label reported by `server_info()`.
        database: Backing store; omitted or type `none` runs without one.
        enable_api: Serve the generated HTTP API when started.
        api_prefix: Path prefix of every route.
        enable_llm: Add verbose descriptions to table metadata.
        api_host: Interface the API binds to.
        api_port: Port the API binds to.
        llm: Description model selection.
    """
    name: str
    type: str = "database"
    database: Optional[DatabaseConfig] = None
    enable_api: bool = False
    api_prefix: str = "/api/db"
    enable_llm: bool = False
    api_host: str = Field(default_factory=lambda: settings.api_host)
    api_port: int = Field(default_factory=lambda: settings.api_port)
    llm: LLMConfig = Field(default_factory=LLMConfig)

    @property
    def has_database(self) -> bool:
        return self.database is not None and (self.database.type or "").lower() not in NO_DATABASE

    def to_json(self) -> str:
        """Serializes the configuration; secret fields are masked."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "ServerConfig":
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise ConfigurationError(f"Failed to parse server configuration: {e}") from e


def parse_server_config(raw: Dict[str, Any]) -> ServerConfig:
    try:
        return ServerConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid server configuration: {e}") from e


def load_server_config(path: Union[str, pathlib.Path]) -> ServerConfig:
    """
    Load a server configuration from a YAML or JSON file.

    Raises:
        ConfigurationError: If the file is missing or its content is invalid.
    """
    path = pathlib.Path(path)
    if not path.exists():
        raise ConfigurationError(f"Server config not found: {path}")

    text = path.read_text()
    try:
        if path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read server config {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError("Server config must be a mapping")
    return parse_server_config(raw)
