"""
Configuration loader module for gcontacts-backup.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Basic validation of configuration structure
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from gcontacts_backup.utils.paths import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Valid archive output formats
VALID_FORMATS = ("json", "csv")

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.gcontacts-backup/ or
                       $GCONTACTS_BACKUP_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Returns an empty dict if the file doesn't exist, allowing
        graceful operation with CLI defaults.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            "verbose": bool,
            "credentials_file": str,
            "default_format": str,
            # Auth options
            "auth_timeout": int,
            # Logging options
            "log_dir": str,
            "log_retention_count": int,
            # API options
            "api_page_size": int,
            "api_rate_limit_delay": (int, float),
            "api_delete_batch_size": int,
            "api_create_batch_size": int,
        }

        for key, value in config.items():
            if key not in valid_keys:
                continue
            expected_type = valid_keys[key]
            # bool is an int subclass; reject it where a number is expected
            is_bool_for_number = isinstance(value, bool) and expected_type is not bool
            if not isinstance(value, expected_type) or is_bool_for_number:
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                raise ConfigError(
                    f"Invalid type for '{key}': expected {type_name}, "
                    f"got {type(value).__name__}"
                )

        if "default_format" in config and config["default_format"] not in VALID_FORMATS:
            raise ConfigError(
                f"Invalid default_format '{config['default_format']}'. "
                f"Must be one of: {', '.join(VALID_FORMATS)}"
            )

        # (key, minimum, maximum); maximum None means unbounded
        ranges: list[tuple[str, float, float | None]] = [
            ("auth_timeout", 1, None),
            ("log_retention_count", 0, None),
            ("api_page_size", 1, 1000),
            ("api_rate_limit_delay", 0, None),
            ("api_delete_batch_size", 1, 500),
            ("api_create_batch_size", 1, 200),
        ]
        for key, minimum, maximum in ranges:
            if key not in config:
                continue
            value = config[key]
            if value < minimum:
                raise ConfigError(f"{key} must be >= {minimum}, got {value}")
            if maximum is not None and value > maximum:
                raise ConfigError(f"{key} must be <= {maximum}, got {value}")

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Returns:
            Validated configuration dictionary

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
