from __future__ import annotations

import json
import logging
import os
import pathlib
import tempfile
from copy import deepcopy
from typing import Any, Callable, Dict, List, Optional, Set, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from paperboy.core.base import PaperboyManager
from paperboy.utils.exceptions import ConfigurationError, ManagerInitializationError


class ConfigSchema(BaseModel):
    """Schema for validating configuration data.

    This model defines the expected structure and default values for the
    application configuration.
    """
    app: Dict[str, Any] = Field(
        default_factory=lambda: {
            'name': 'Paperboy',
            'version': '0.1.0',
            'environment': 'production',
            'debug': False,
        },
        description='Application settings',
    )
    logging: Dict[str, Any] = Field(
        default_factory=lambda: {
            'level': 'INFO',
            'format': 'text',
            'file': {
                'enabled': False,
                'path': 'logs/paperboy.log',
                'rotation': '10 MB',
                'retention': '30 days',
            },
            'console': {
                'enabled': True,
                'level': 'INFO',
            },
        },
        description='Logging settings',
    )
    thread_pool: Dict[str, Any] = Field(
        default_factory=lambda: {
            'thread_name_prefix': 'paperboy-worker',
            'join_timeout': 2.0,
        },
        description='Worker thread settings',
    )
    ui: Dict[str, Any] = Field(
        default_factory=lambda: {
            'debounce_ms': 250,
            'slow_lookup_ms': 8000,
        },
        description='UI coordination settings',
    )
    helper: Dict[str, Any] = Field(
        default_factory=lambda: {
            'name': 'rssFinder',
            'install_bindir': '',
            'system_dirs': ['/usr/local/bin', '/usr/bin'],
            'timeout': None,
        },
        description='External feed discovery helper',
    )
    discovery: Dict[str, Any] = Field(
        default_factory=lambda: {
            'app_dir_name': 'paperboy',
            'feeds_file_name': 'local_feeds',
            'config_dir': '',
        },
        description='Discovered feed file location',
    )
    network: Dict[str, Any] = Field(
        default_factory=lambda: {
            'user_agent': 'paperboy/0.1',
            'timeout': 10.0,
            'max_retries': 3,
        },
        description='Remote fetch settings',
    )
    location: Dict[str, Any] = Field(
        default_factory=lambda: {
            'zip_table': '',
            'suggestion_limit': 8,
        },
        description='Location lookup settings',
    )

    @model_validator(mode='after')
    def validate_ui_timings(self) -> 'ConfigSchema':
        """Validate that UI timings are non-negative integers."""
        for key in ('debounce_ms', 'slow_lookup_ms'):
            value = self.ui.get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f'ui.{key} must be a non-negative integer.')
        return self

    @model_validator(mode='after')
    def validate_helper_name(self) -> 'ConfigSchema':
        """Validate that a helper name is set."""
        if not self.helper.get('name'):
            raise ValueError('helper.name must not be empty.')
        return self


class ConfigManager(PaperboyManager):
    """Configuration manager for the application.

    This manager handles loading, validating, and providing access to
    configuration settings from files and environment variables.

    Attributes:
        _config_path: Path to the configuration file
        _env_prefix: Prefix for environment variables
        _config: The loaded configuration
        _loaded_from_file: Whether configuration was loaded from a file
        _env_vars_applied: Set of applied environment variables
        _listeners: Dictionary of config change listeners
    """

    def __init__(
            self,
            config_path: Optional[Union[str, pathlib.Path]] = None,
            env_prefix: str = 'PAPERBOY_'
    ) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
            env_prefix: Prefix for environment variables
        """
        super().__init__(name='config_manager')
        self._config_path = pathlib.Path(config_path) if config_path else pathlib.Path('config.yaml')
        self._env_prefix = env_prefix
        self._config: Dict[str, Any] = {}
        self._loaded_from_file = False
        self._env_vars_applied: Set[str] = set()
        self._listeners: Dict[str, List[Callable[[str, Any], None]]] = {}
        self._logger = logging.getLogger('config_manager')

    def initialize(self) -> None:
        """Initialize the configuration manager.

        Loads configuration from default schema, file, and environment variables.

        Raises:
            ManagerInitializationError: If initialization fails
        """
        try:
            self._config = ConfigSchema().model_dump()
            self._load_from_file()
            self._apply_env_vars()
            self._validate_config()

            self._initialized = True
            self._healthy = True
        except Exception as e:
            raise ManagerInitializationError(
                f'Failed to initialize ConfigManager: {str(e)}',
                manager_name=self.name
            ) from e

    def _load_from_file(self) -> None:
        """Load configuration from a file.

        Raises:
            ConfigurationError: If the file cannot be parsed
        """
        if not self._config_path.exists():
            return

        try:
            with open(self._config_path, 'r', encoding='utf-8') as f:
                content = f.read()

            if self._config_path.suffix.lower() in ('.yaml', '.yml'):
                file_config = yaml.safe_load(content)
            elif self._config_path.suffix.lower() == '.json':
                file_config = json.loads(content)
            else:
                raise ConfigurationError(
                    f'Unsupported config file format: {self._config_path.suffix}',
                    config_key='config_path'
                )

            if file_config:
                self._merge_config(file_config)
                self._loaded_from_file = True
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f'Error parsing config file {self._config_path}: {str(e)}',
                config_key='config_path'
            ) from e

    def _apply_env_vars(self) -> None:
        """Apply environment variables to the configuration.

        ``PAPERBOY_HELPER_INSTALL_BINDIR`` maps onto ``helper.install_bindir``;
        underscores are joined back together where that matches an existing key.
        """
        for env_name, env_value in os.environ.items():
            if not env_name.startswith(self._env_prefix):
                continue

            parts = env_name[len(self._env_prefix):].lower().split('_')
            config_path = self._resolve_env_path(self._config, parts)
            self._set_nested_value(self._config, config_path, self._parse_env_value(env_value))
            self._env_vars_applied.add(env_name)

    def _resolve_env_path(self, config: Any, parts: List[str]) -> List[str]:
        """Match environment name fragments against existing configuration keys.

        Args:
            config: The configuration (sub)tree being matched
            parts: Lower-cased fragments of the variable name

        Returns:
            The key path to assign
        """
        if not parts:
            return []
        if isinstance(config, dict):
            for end in range(len(parts), 0, -1):
                candidate = '_'.join(parts[:end])
                if candidate in config:
                    return [candidate] + self._resolve_env_path(config[candidate], parts[end:])
        return parts

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable values into appropriate types.

        Args:
            value: The string value from the environment

        Returns:
            The parsed value (bool, int, float, or string)
        """
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if value.isdigit() or (value.startswith('-') and value[1:].isdigit()):
                return int(value)
            return float(value)
        except ValueError:
            return value

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any) -> None:
        """Set a nested value in the configuration dictionary.

        Args:
            config: The configuration dictionary
            path: List of keys forming the path to the value
            value: The value to set
        """
        if not path:
            return

        if len(path) == 1:
            config[path[0]] = value
            return

        key = path[0]
        if key not in config:
            config[key] = {}
        if not isinstance(config[key], dict):
            config[key] = {}

        self._set_nested_value(config[key], path[1:], value)

    def _validate_config(self) -> None:
        """Validate the configuration against the schema.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        try:
            self._config = ConfigSchema(**self._config).model_dump()
        except ValidationError as e:
            errors = e.errors()
            error_details = ', '.join((
                f"{'.'.join((str(loc) for loc in error['loc']))}: {error['msg']}"
                for error in errors
            ))
            raise ConfigurationError(
                f'Invalid configuration: {error_details}',
                details={'validation_errors': errors}
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key.

        Args:
            key: The configuration key (dot-separated for nested values)
            default: Default value if the key doesn't exist

        Returns:
            The configuration value or default

        Raises:
            ConfigurationError: If the manager isn't initialized
        """
        if not self._initialized:
            raise ConfigurationError(
                'Cannot access configuration before initialization',
                config_key=key
            )

        result: Any = self._config
        try:
            for part in key.split('.'):
                result = result[part]
            return result
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by key.

        Args:
            key: The configuration key (dot-separated for nested values)
            value: The value to set

        Raises:
            ConfigurationError: If the manager isn't initialized or the value is invalid
        """
        if not self._initialized:
            raise ConfigurationError(
                'Cannot modify configuration before initialization',
                config_key=key
            )

        new_config = deepcopy(self._config)
        self._set_nested_value(new_config, key.split('.'), value)

        try:
            self._config = ConfigSchema(**new_config).model_dump()
        except ValidationError as e:
            raise ConfigurationError(
                f'Invalid configuration value for {key}: {str(e)}',
                config_key=key,
                details={'validation_errors': e.errors()}
            ) from e

        self._notify_listeners(key, value)
        self._save_to_file()

    def _save_to_file(self) -> None:
        """Write the configuration back to the file it was loaded from."""
        if not self._loaded_from_file:
            return

        config_dir = self._config_path.parent
        suffix = self._config_path.suffix.lower()
        if suffix not in ('.yaml', '.yml', '.json'):
            return

        try:
            os.makedirs(config_dir, exist_ok=True)
            with tempfile.NamedTemporaryFile(mode='w', delete=False, dir=config_dir, suffix='.tmp') as tmp:
                if suffix == '.json':
                    json.dump(self._config, tmp, indent=2)
                else:
                    yaml.dump(self._config, tmp, default_flow_style=False)
            os.replace(tmp.name, str(self._config_path))
        except OSError as e:
            self._logger.error(f'Error saving configuration to {self._config_path}: {str(e)}')

    def _merge_config(
            self,
            from_config: Dict[str, Any],
            to_config: Optional[Dict[str, Any]] = None
    ) -> None:
        """Merge a configuration dictionary into another.

        Args:
            from_config: The source configuration
            to_config: The target configuration (defaults to self._config)
        """
        if to_config is None:
            to_config = self._config

        for key, value in from_config.items():
            if key in to_config and isinstance(to_config[key], dict) and isinstance(value, dict):
                self._merge_config(value, to_config[key])
            elif value not in [None, '', {}]:
                to_config[key] = value

    def register_listener(self, key: str, callback: Callable[[str, Any], None]) -> None:
        """Register a listener for configuration changes.

        Args:
            key: The configuration key to listen for
            callback: Callback function to call when the key changes
        """
        if key not in self._listeners:
            self._listeners[key] = []
        if callback not in self._listeners[key]:
            self._listeners[key].append(callback)

    def unregister_listener(self, key: str, callback: Callable[[str, Any], None]) -> None:
        """Unregister a listener for configuration changes.

        Args:
            key: The configuration key
            callback: The callback function to unregister
        """
        if key in self._listeners and callback in self._listeners[key]:
            self._listeners[key].remove(callback)
            if not self._listeners[key]:
                del self._listeners[key]

    def _notify_listeners(self, key: str, value: Any) -> None:
        """Notify listeners about a configuration change.

        Args:
            key: The changed configuration key
            value: The new value
        """
        for listener_key, callbacks in list(self._listeners.items()):
            if listener_key != key and not key.startswith(f'{listener_key}.'):
                continue
            for callback in list(callbacks):
                try:
                    callback(key, value)
                except Exception as e:
                    self._logger.error(f'Error in config listener for {key}: {str(e)}', exc_info=True)

    def shutdown(self) -> None:
        """Shut down the configuration manager."""
        self._listeners.clear()
        self._initialized = False
        self._healthy = False

    def status(self) -> Dict[str, Any]:
        """Get the status of the configuration manager.

        Returns:
            Dictionary with status information
        """
        status = super().status()
        status.update({
            'config_file': str(self._config_path) if self._loaded_from_file else None,
            'loaded_from_file': self._loaded_from_file,
            'env_vars_applied': len(self._env_vars_applied),
            'registered_listeners': sum(len(callbacks) for callbacks in self._listeners.values())
        })
        return status
