from .config import ServerConfig, load_server_config, parse_server_config
from .lifecycle import DatabaseServer, ServerState

__all__ = [
    "DatabaseServer",
    "ServerConfig",
    "ServerState",
    "load_server_config",
    "parse_server_config",
]
