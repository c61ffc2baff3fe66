# src/config/__init__.py

from .config_manager import (
    ConfigManager,
    ConfigurationError,
    FirestoreConfig,
    LoggingConfig,
    MaintenanceConfig
)

__all__ = [
    'ConfigManager',
    'ConfigurationError',
    'FirestoreConfig',
    'LoggingConfig',
    'MaintenanceConfig'
]
