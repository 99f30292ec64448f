"""
Document registry server - Main entry point.

This module starts the registry with all components:
- Store (SQLite file or in-memory)
- RegistryService (permission engine, registries, locks)
- HTTP API served by uvicorn

Usage:
    python -m docreg_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The store schema exists before the first request is accepted
    - The service is closed after uvicorn finishes draining requests

How to change safely:
    - Add new components to build_service(), not here
    - Keep setup_logging() the only place that touches root handlers
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import build_service, create_app
from .config import ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)
    logger.info("Starting document registry")
    config.log_config()

    service = build_service(config)
    app = create_app(service)

    try:
        uvicorn.run(app, host=config.http.host, port=config.http.port, log_config=None)
    finally:
        service.close()
        logger.info("Document registry stopped")


if __name__ == "__main__":
    main()
