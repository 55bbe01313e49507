"""
Configuration management infrastructure.

This module provides configuration models and the loader that reads them
from files and the environment.
"""

from .models import ApplicationConfig, StorageConfig, UploadConfig, LoggingConfig, ServerConfig
from .loader import ConfigLoader

__all__ = [
    "ApplicationConfig",
    "StorageConfig",
    "UploadConfig",
    "LoggingConfig",
    "ServerConfig",
    "ConfigLoader",
]
