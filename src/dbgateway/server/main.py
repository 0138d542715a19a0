#!/usr/bin/env python
"""
Database API gateway server.

Loads a server configuration, starts the database server and blocks until
SIGINT or SIGTERM.
"""

import argparse
import signal
import sys
import threading

from dbgateway.common.errors import GatewayError
from dbgateway.common.logger import configure_logging, get_logger
from dbgateway.common.settings import settings
from .config import load_server_config
from .lifecycle import DatabaseServer

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Database API Gateway Server')
    parser.add_argument('--config', default=settings.config_path, help=f'Server config file (default: {settings.config_path})')
    parser.add_argument('--host', default=None, help='Override the configured API host')
    parser.add_argument('--port', type=int, default=None, help='Override the configured API port')
    parser.add_argument('--log-level', default=settings.log_level, help=f'Log level (default: {settings.log_level})')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_format=settings.log_json)

    try:
        config = load_server_config(args.config)
    except GatewayError as e:
        logger.error(f"Failed to load configuration: {e.message}")
        return 1

    overrides = {}
    if args.host:
        overrides["api_host"] = args.host
    if args.port:
        overrides["api_port"] = args.port
    if overrides:
        config = config.model_copy(update=overrides)

    try:
        server = DatabaseServer(config)
        server.start()
    except GatewayError as e:
        logger.error(f"Failed to start server '{config.name}': {e.message}")
        return 1

    stop_requested = threading.Event()

    def _handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stop_requested.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    logger.info(f"Server info: {server.server_info()}")
    while not stop_requested.wait(timeout=1.0):
        pass

    server.stop()
    return 0


if __name__ == '__main__':
    sys.exit(main())
