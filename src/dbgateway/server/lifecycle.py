from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI

from dbgateway.api.app import create_app
from dbgateway.api.registry import ConflictPolicy, EndpointRegistry
from dbgateway.api.service import DatabaseService
from dbgateway.common.cancellation import CancellationToken
from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import get_logger
from dbgateway.common.settings import settings
from dbgateway.connectors.factory import create_connector
from dbgateway.connectors.interfaces import DatabaseConnector
from dbgateway.generation.generator import APIGenerator, metadata_endpoints
from dbgateway.generation.models import APIGeneratorConfig
from dbgateway.llm.enhancer import build_enhancer
from .config import ServerConfig

logger = get_logger(__name__)


class ServerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class DatabaseServer:
    """
    Owns one connector, its endpoint registry and the HTTP app built on them.

    Start/Stop transitions are serialized by a per-instance lock; nothing
    here is shared between instances.
    """

    def __init__(
        self,
        config: ServerConfig,
        connector: Optional[DatabaseConnector] = None,
        conflict_policy: Optional[ConflictPolicy] = None,
    ):
        if config is None:
            raise ConfigurationError("server configuration is required")

        self.config = config
        self.cancellation = CancellationToken()
        self._lock = threading.Lock()
        self._state = ServerState.STOPPED
        self._api_server: Optional[uvicorn.Server] = None
        self._api_thread: Optional[threading.Thread] = None

        if connector is None and config.has_database:
            connector = create_connector(
                config.database,
                cancellation=self.cancellation,
                enhancer=build_enhancer(config.llm),
            )
        elif connector is not None:
            connector.cancellation = self.cancellation
        self.connector = connector

        self.registry = EndpointRegistry(conflict_policy or ConflictPolicy(settings.route_conflict_policy))
        self.generator = APIGenerator(
            self.connector,
            APIGeneratorConfig(
                enable_llm=config.enable_llm,
                api_prefix=config.api_prefix,
                include_metadata=True,
            ),
        )
        self.service = DatabaseService(self.connector, self.registry, self.generator, enable_llm=config.enable_llm)

        self.app: Optional[FastAPI] = None
        if self.connector is not None and config.enable_api:
            self.registry.register(metadata_endpoints())
            self.app = create_app(self.service, api_prefix=config.api_prefix, title=config.name)

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ServerState.RUNNING

    def start(self) -> None:
        """Connects and, when enabled, starts serving the API in the background.

        No-op when already running. Connection failures propagate and leave
        the server stopped. Bind/listen failures of the serving thread are
        only logged.
        """
        with self._lock:
            if self._state == ServerState.RUNNING:
                return

            if self.connector is not None:
                self.cancellation.reset()
                self.connector.connect()

                if self.app is not None:
                    self._start_api()

            self._state = ServerState.RUNNING
            logger.info(f"Server '{self.config.name}' started")

    def stop(self) -> None:
        """Cancels in-flight work, waits for it to drain, disconnects and stops serving.

        No-op when already stopped. The drain is bounded by the shutdown
        timeout. Disconnect failures are logged, never raised.
        """
        with self._lock:
            if self._state == ServerState.STOPPED:
                return

            # Interrupts running statements through the connector's callback.
            self.cancellation.cancel()

            if self.connector is not None:
                if not self.connector.wait_idle(settings.shutdown_timeout_sec):
                    logger.warning(
                        f"Database operations still running after {settings.shutdown_timeout_sec}s; disconnecting anyway"
                    )
                try:
                    self.connector.disconnect()
                except Exception as e:
                    logger.error(f"Error disconnecting from database: {e}")

            self._stop_api()
            self._state = ServerState.STOPPED
            logger.info(f"Server '{self.config.name}' stopped")

    def _start_api(self) -> None:
        uv_config = uvicorn.Config(
            self.app,
            host=self.config.api_host,
            port=self.config.api_port,
            log_config=None,
        )
        api_server = uvicorn.Server(uv_config)

        def _serve():
            logger.info(f"Starting API server on {self.config.api_host}:{self.config.api_port}")
            try:
                api_server.run()
            except (Exception, SystemExit) as e:
                logger.error(f"API server error: {e}")
            if not api_server.started:
                logger.error(f"API server on {self.config.api_host}:{self.config.api_port} did not start")

        thread = threading.Thread(target=_serve, name=f"api-{self.config.name}", daemon=True)
        self._api_server = api_server
        self._api_thread = thread
        thread.start()

    def _stop_api(self) -> None:
        api_server, thread = self._api_server, self._api_thread
        self._api_server = None
        self._api_thread = None
        if api_server is None:
            return
        api_server.should_exit = True
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=settings.shutdown_timeout_sec)
            if thread.is_alive():
                logger.warning("API server did not exit within the shutdown timeout")

    def server_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "name": self.config.name,
            "type": self.config.type,
            "is_running": self.is_running,
        }
        if self.config.database is not None:
            info["database"] = {
                "type": self.config.database.type,
                "enable_api": self.config.enable_api,
                "enable_llm": self.config.enable_llm,
            }
        if self.app is not None:
            info["endpoints"] = len(self.registry)
        return info
