"""
Configuration models and data structures.

This module defines the configuration models used throughout the application,
providing type safety and validation for configuration values.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

VALID_BACKENDS = ("local", "memory")
VALID_MERGE_MODES = ("concatenate", "compose", "block_commit")
VALID_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class StorageConfig:
    """Storage backend configuration."""
    backend: str = "local"
    root_directory: str = "data/storage"
    # Only consulted by the memory backend, local storage always concatenates
    merge_mode: str = "concatenate"
    fan_in: Optional[int] = None


@dataclass
class UploadConfig:
    """Chunked upload configuration."""
    chunk_size: int = 5 * 1024 * 1024
    staging_prefix: str = ".uploads"
    max_part_number: Optional[int] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
    )
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False


@dataclass
class ServerConfig:
    """HTTP API server configuration."""
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    # Basic application settings
    name: str = "Chunked Upload"
    version: str = "0.1.0"
    debug: bool = False
    environment: str = "production"

    # Component configurations
    storage: StorageConfig = field(default_factory=StorageConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_storage()
        self._validate_upload()
        self._validate_logging()
        self._validate_ports()

    def _validate_storage(self) -> None:
        storage = self.storage
        if storage.backend not in VALID_BACKENDS:
            raise ValueError(
                f"Storage backend must be one of {', '.join(VALID_BACKENDS)}, got {storage.backend!r}")
        if storage.merge_mode not in VALID_MERGE_MODES:
            raise ValueError(
                f"Merge mode must be one of {', '.join(VALID_MERGE_MODES)}, got {storage.merge_mode!r}")
        if storage.fan_in is not None and storage.fan_in < 2:
            raise ValueError(f"Compose fan-in must be at least 2, got {storage.fan_in}")
        if storage.backend == "local" and not storage.root_directory:
            raise ValueError("Local storage requires a root directory")

    def _validate_upload(self) -> None:
        upload = self.upload
        if upload.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {upload.chunk_size}")
        if not upload.staging_prefix.strip("/"):
            raise ValueError("Staging prefix must not be empty")
        if upload.max_part_number is not None and upload.max_part_number < 1:
            raise ValueError(f"Max part number must be positive, got {upload.max_part_number}")

    def _validate_logging(self) -> None:
        if self.logging.level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level {self.logging.level!r}")
        if self.logging.backup_count < 0:
            raise ValueError(f"Backup count must not be negative, got {self.logging.backup_count}")

    def _validate_ports(self) -> None:
        if not (1 <= self.server.port <= 65535):
            raise ValueError(
                f"Server port must be between 1 and 65535, got {self.server.port}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'Chunked Upload'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            environment=data.get('environment', 'production'),
            storage=StorageConfig(**data.get('storage', {})),
            upload=UploadConfig(**data.get('upload', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            server=ServerConfig(**data.get('server', {})),
            config_file_path=data.get('config_file_path'),
        )
