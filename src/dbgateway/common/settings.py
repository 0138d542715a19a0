from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Application configuration settings backed by environment variables."""

    config_path: str = Field(
        default="configs/gateway.yaml",
        validation_alias="GATEWAY_CONFIG",
        description="Path to the YAML or JSON server configuration file."
    )

    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8081, validation_alias="API_PORT")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="LOG_JSON",
        description="Emit JSON log lines instead of plain text."
    )

    pool_max_open: int = Field(
        default=10,
        validation_alias="DB_POOL_MAX_OPEN",
        description="Default upper bound on open connections per connector."
    )
    pool_max_idle: int = Field(
        default=5,
        validation_alias="DB_POOL_MAX_IDLE",
        description="Default number of idle connections kept in the pool."
    )
    pool_max_lifetime_sec: int = Field(
        default=3600,
        validation_alias="DB_POOL_MAX_LIFETIME_SEC",
        description="Default connection lifetime before it is recycled."
    )

    route_conflict_policy: Literal["replace", "reject"] = Field(
        default="replace",
        validation_alias="ROUTE_CONFLICT_POLICY",
        description="What the endpoint registry does when a route with an already registered method and path shape is registered."
    )

    shutdown_timeout_sec: float = Field(
        default=10.0,
        validation_alias="SHUTDOWN_TIMEOUT_SEC",
        description="How long Stop() waits for in-flight database work to drain and for the serving thread to exit."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


settings = Settings()
