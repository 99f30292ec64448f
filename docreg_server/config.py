"""
Configuration management for DocReg Server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set an explicit DATA_DIR

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Document all new settings in this module's dataclass docstrings
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class StorageBackend(Enum):
    """Supported storage backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


@dataclass(frozen=True)
class StorageConfig:
    """Storage configuration.

    Attributes:
        backend: Which storage backend to use
        data_dir: Directory for the SQLite database
        db_filename: Database file name inside data_dir
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    backend: StorageBackend = StorageBackend.SQLITE
    data_dir: str = "/var/lib/docreg"
    db_filename: str = "registry.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / self.db_filename

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("STORAGE_BACKEND", "sqlite").lower()
        try:
            backend = StorageBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STORAGE_BACKEND '{backend_str}'. Must be one of: sqlite, memory"
            )

        return cls(
            backend=backend,
            data_dir=os.getenv("DATA_DIR", "/var/lib/docreg"),
            db_filename=os.getenv("DB_FILENAME", "registry.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
    """

    host: str = "0.0.0.0"
    port: int = 8081

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8081")),
        )


@dataclass(frozen=True)
class RegistryConfig:
    """Registry behaviour configuration.

    Attributes:
        max_page_size: Upper bound for collection listings
    """

    max_page_size: int = 500

    @classmethod
    def from_env(cls) -> RegistryConfig:
        """Load configuration from environment variables."""
        return cls(max_page_size=int(os.getenv("MAX_PAGE_SIZE", "500")))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Observability and logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        storage: Storage configuration
        http: HTTP server configuration
        registry: Registry behaviour configuration
        observability: Observability configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            http=HttpConfig.from_env(),
            registry=RegistryConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.storage.backend == StorageBackend.SQLITE:
            if not self.storage.data_dir:
                raise ValueError("DATA_DIR is required when STORAGE_BACKEND=sqlite")
            if not os.path.exists(self.storage.data_dir):
                logger.warning(
                    f"Data directory does not exist: {self.storage.data_dir}. "
                    "It will be created on first write."
                )

        if self.registry.max_page_size < 1:
            raise ValueError("MAX_PAGE_SIZE must be at least 1")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not 0 < self.http.port < 65536:
            raise ValueError(f"Invalid HTTP_PORT {self.http.port}")

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "storage_backend": self.storage.backend.value,
                "db_path": str(self.storage.db_path)
                if self.storage.backend == StorageBackend.SQLITE
                else None,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "max_page_size": self.registry.max_page_size,
                "log_level": self.observability.log_level,
            },
        )
