# src/config/config_manager.py

import yaml
import os
from typing import Dict, Any, List, Optional
from pathlib import Path
from dataclasses import dataclass, field
import logging
from dotenv import load_dotenv

DEFAULT_COLLECTIONS = ['notes', 'opportunities', 'accounts', 'inboundEmails']
DEFAULT_ALIASES = {'emails': 'inboundEmails'}


@dataclass
class FirestoreConfig:
    project_id: Optional[str] = None
    database: Optional[str] = None
    credentials_path: Optional[str] = None
    max_batch_size: int = 500


@dataclass
class MaintenanceConfig:
    timestamp_field: str = 'createdAt'
    collections: List[str] = field(default_factory=lambda: list(DEFAULT_COLLECTIONS))
    aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    preview_size: int = 5
    grace_seconds: float = 5.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = '%(asctime)s %(levelname)-8s [%(correlation_id)s] %(name)s: %(message)s'


class ConfigurationError(Exception):
    """Custom exception for configuration errors"""
    pass


class ConfigManager:
    def __init__(self,
                 config_path: str,
                 environment: str,
                 env_file: Optional[str] = None) -> None:
        """
        Initialize configuration manager

        Args:
            config_path: Directory holding base.yaml and <environment>.yaml
            environment: Deployment environment (dev/staging/prod)
            env_file: Optional .env file loaded before APP_* overrides apply
        """
        self.config_path = Path(config_path)
        self.environment = environment
        self.logger = logging.getLogger('ConfigManager')
        self._config_cache: Dict[str, Any] = {}

        # Existing environment variables win over the .env file.
        load_dotenv(dotenv_path=env_file, override=False)

        self.reload_config()

    def get_config(self, component: str) -> Dict[str, Any]:
        """
        Get configuration for a specific component

        Args:
            component: Component name ('firestore', 'maintenance', 'logging')

        Returns:
            Dictionary containing component configuration
        """
        return self._config_cache.get(component) or {}

    def reload_config(self) -> None:
        """Reload configuration from files and environment"""
        try:
            base_config = self._load_yaml_config('base')
            env_config = self._load_yaml_config(self.environment)

            self._config_cache = self._merge_configs(base_config, env_config)
            self._apply_env_variables()
            self._validate_config()

            self.logger.debug("Successfully loaded configuration")

        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to load configuration: {str(e)}")
            raise ConfigurationError(f"Configuration load failed: {str(e)}") from e

    def _load_yaml_config(self, config_name: str) -> Dict[str, Any]:
        """Load YAML configuration file; a missing file is an empty layer"""
        config_file = self.config_path / f"{config_name}.yaml"
        if not config_file.exists():
            return {}
        try:
            with open(config_file, 'r') as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"Failed to load {config_name} configuration: {str(e)}")
            raise ConfigurationError(f"Failed to load {config_name} configuration") from e

        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_file} must contain a mapping at the top level")
        return loaded

    def _merge_configs(self, base: Dict[str, Any],
                       override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge configuration dictionaries with override"""
        merged = base.copy()
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _apply_env_variables(self) -> None:
        """Apply APP_<SECTION>_<KEY> overrides, e.g. APP_FIRESTORE_PROJECT_ID"""
        for key, value in os.environ.items():
            if not key.startswith('APP_'):
                continue
            section, _, name = key[4:].lower().partition('_')
            if not section or not name:
                continue
            self._config_cache.setdefault(section, {})
            if isinstance(self._config_cache[section], dict):
                self._config_cache[section][name] = value

    def _validate_config(self) -> None:
        """Validate configuration values and types"""
        firestore = self._config_cache.setdefault('firestore', {}) or {}
        self._config_cache['firestore'] = firestore
        if firestore.get('credentials_path'):
            firestore['credentials_path'] = self._resolve_reference(firestore['credentials_path'])

        max_batch_size = self._as_int(firestore.get('max_batch_size', 500), 'firestore.max_batch_size')
        if not 1 <= max_batch_size <= 500:
            raise ConfigurationError(
                f"firestore.max_batch_size must be between 1 and 500, got {max_batch_size}"
            )

        maintenance = self._config_cache.get('maintenance') or {}
        collections = maintenance.get('collections', DEFAULT_COLLECTIONS)
        if isinstance(collections, str):
            collections = [name.strip() for name in collections.split(',') if name.strip()]
        if not collections:
            raise ConfigurationError("maintenance.collections must list at least one collection")
        maintenance['collections'] = collections

        aliases = maintenance.get('aliases', DEFAULT_ALIASES) or {}
        unknown = [target for target in aliases.values() if target not in collections]
        if unknown:
            raise ConfigurationError(f"Collection aliases point at unknown collections: {unknown}")
        maintenance['aliases'] = aliases

        if self._as_float(maintenance.get('grace_seconds', 5.0), 'maintenance.grace_seconds') < 0:
            raise ConfigurationError("maintenance.grace_seconds cannot be negative")
        if self._as_int(maintenance.get('preview_size', 5), 'maintenance.preview_size') < 0:
            raise ConfigurationError("maintenance.preview_size cannot be negative")

        timestamp_field = maintenance.get('timestamp_field', 'createdAt')
        if not isinstance(timestamp_field, str) or not timestamp_field.strip():
            raise ConfigurationError("maintenance.timestamp_field must be a non-empty field name")
        self._config_cache['maintenance'] = maintenance

        level = str((self._config_cache.get('logging') or {}).get('level', 'INFO')).upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigurationError(f"Unknown log level: {level}")

    @staticmethod
    def _as_int(value: Any, name: str) -> int:
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e

    @staticmethod
    def _as_float(value: Any, name: str) -> float:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{name} must be a number, got {value!r}") from e

    def _resolve_reference(self, value: str) -> str:
        """
        Resolve an 'env:VAR_NAME' reference

        Args:
            value: Plain value or env:VAR_NAME reference

        Returns:
            Resolved value
        """
        if not isinstance(value, str) or not value.startswith('env:'):
            return value

        env_var = value.split(':', 1)[1]
        result = os.environ.get(env_var, '')
        if not result:
            self.logger.warning(f"Environment variable '{env_var}' not set")
        return result

    def get_firestore_config(self) -> FirestoreConfig:
        """Get Firestore configuration as dataclass"""
        firestore_config = self.get_config('firestore')
        return FirestoreConfig(
            project_id=firestore_config.get('project_id') or None,
            database=firestore_config.get('database') or None,
            credentials_path=firestore_config.get('credentials_path') or None,
            max_batch_size=int(firestore_config.get('max_batch_size', 500))
        )

    def get_maintenance_config(self) -> MaintenanceConfig:
        """Get maintenance engine configuration as dataclass"""
        maintenance_config = self.get_config('maintenance')
        return MaintenanceConfig(
            timestamp_field=maintenance_config.get('timestamp_field', 'createdAt'),
            collections=list(maintenance_config.get('collections', DEFAULT_COLLECTIONS)),
            aliases=dict(maintenance_config.get('aliases', DEFAULT_ALIASES)),
            preview_size=int(maintenance_config.get('preview_size', 5)),
            grace_seconds=float(maintenance_config.get('grace_seconds', 5.0))
        )

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration as dataclass"""
        logging_config = self.get_config('logging')
        defaults = LoggingConfig()
        return LoggingConfig(
            level=str(logging_config.get('level', defaults.level)).upper(),
            format=logging_config.get('format', defaults.format)
        )
