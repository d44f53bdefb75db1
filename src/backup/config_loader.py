"""YAML configuration loading and validation.

This module loads optional backup settings from a YAML file. A missing file
means defaults; every key present is type checked and unknown keys are
rejected so typos don't silently fall back to defaults.
"""

import logging
from dataclasses import fields
from typing import Any, Dict
import yaml

from .errors import ConfigError, FilesystemError
from .models import BackupConfig

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Handles configuration file loading and validation.

    Configuration file structure (every key optional):
        backup_dir: "./notion-backup"
        attachments_dir: "Attachments"
        state_file: ".backup-state.json"
        max_attempts: 5
        base_delay: 2.0
        request_timeout: 30
        download_timeout: 60
        max_redirects: 5
        export_delay: 0.1
        max_concurrent_downloads: 5
        filename_max_length: 200
        page_size: 100
    """

    DEFAULT_CONFIG_PATH = 'notion-backup.yaml'

    # Lower bounds for numeric fields
    MINIMUMS = {
        'max_attempts': 1,
        'base_delay': 0,
        'request_timeout': 1,
        'download_timeout': 1,
        'max_redirects': 0,
        'export_delay': 0,
        'max_concurrent_downloads': 1,
        'filename_max_length': 16,
        'page_size': 1,
    }

    @classmethod
    def load(cls, config_path: str, required: bool = False) -> BackupConfig:
        """Load and parse configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file
            required: Raise instead of using defaults when the file is missing

        Returns:
            BackupConfig object with parsed configuration

        Raises:
            FilesystemError: If the file cannot be read
            ConfigError: If configuration is invalid or malformed
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            if required:
                raise FilesystemError(
                    config_path,
                    'read',
                    'Configuration file not found'
                )
            logger.debug(f"No configuration file at {config_path}, using defaults")
            return BackupConfig()
        except PermissionError:
            raise FilesystemError(
                config_path,
                'read',
                'Permission denied'
            )
        except OSError as e:
            raise FilesystemError(
                config_path,
                'read',
                str(e)
            )

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(
                f"Invalid YAML syntax: {str(e)}"
            )

        if config_dict is None:
            return BackupConfig()

        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        return cls._parse_config(config_dict)

    @classmethod
    def _parse_config(cls, config_dict: Dict[str, Any]) -> BackupConfig:
        """Parse and validate a configuration dictionary.

        Raises:
            ConfigError: If configuration is invalid
        """
        known = {f.name: f for f in fields(BackupConfig)}
        unknown = set(config_dict) - set(known)
        if unknown:
            raise ConfigError(
                f"Unknown fields: {', '.join(sorted(str(k) for k in unknown))}"
            )

        defaults = BackupConfig()
        values: Dict[str, Any] = {}
        for name, value in config_dict.items():
            default = getattr(defaults, name)
            values[name] = cls._coerce(name, value, type(default))

        return BackupConfig(**values)

    @classmethod
    def _coerce(cls, name: str, value: Any, expected: type) -> Any:
        """Coerce one value to the type of its default, enforcing minimums."""
        if value is None:
            raise ConfigError("Value cannot be null", name)

        if expected is str:
            if not isinstance(value, str) or not value.strip():
                raise ConfigError("Must be a non-empty string", name)
            return value.strip()

        # bool is an int subclass; YAML "true" must not become 1
        if isinstance(value, bool):
            raise ConfigError(f"Must be a number, got {value!r}", name)

        try:
            coerced = expected(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Must be a number, got {value!r}", name)

        if expected is int and isinstance(value, float) and not value.is_integer():
            raise ConfigError(f"Must be a whole number, got {value!r}", name)

        minimum = cls.MINIMUMS.get(name)
        if minimum is not None and coerced < minimum:
            raise ConfigError(f"Must be at least {minimum}, got {coerced}", name)
        return coerced
