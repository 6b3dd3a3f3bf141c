"""
Per-invocation application settings.

Merges built-in defaults, the optional YAML configuration file and CLI
options into a single immutable AppConfig that is handed to the backup
engine. Nothing here is stored at module level.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from gcontacts_backup.api.people_api import (
    DEFAULT_CREATE_BATCH_SIZE,
    DEFAULT_DELETE_BATCH_SIZE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RATE_LIMIT_DELAY,
)
from gcontacts_backup.auth.google_auth import (
    CREDENTIALS_FILE_NAME,
    DEFAULT_AUTH_TIMEOUT,
)
from gcontacts_backup.auth.token_store import TOKEN_FILE_NAME
from gcontacts_backup.config.loader import VALID_FORMATS, ConfigError
from gcontacts_backup.utils.paths import resolve_config_dir

DEFAULT_FORMAT = "json"
DEFAULT_LOG_RETENTION_COUNT = 10


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable settings for one command invocation.

    Attributes:
        config_dir: Directory holding the token cache, config file and logs
        credentials_file: OAuth client secrets file
        token_file: Cached credential written by the token store
        verbose: Enable debug logging
        default_format: Backup format used when none is given ("json" or "csv")
        log_dir: Directory for daily log files
        log_retention_count: Number of log files kept (0 keeps all)
        auth_timeout: Seconds to wait for the browser authorization callback
        page_size: Items requested per list page
        rate_limit_delay: Seconds slept after each API call
        delete_batch_size: Contacts per batchDeleteContacts request
        create_batch_size: Contacts per batchCreateContacts request
    """

    config_dir: Path
    credentials_file: Path
    token_file: Path
    verbose: bool = False
    default_format: str = DEFAULT_FORMAT
    log_dir: Path | None = None
    log_retention_count: int = DEFAULT_LOG_RETENTION_COUNT
    auth_timeout: float = DEFAULT_AUTH_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    rate_limit_delay: float = DEFAULT_RATE_LIMIT_DELAY
    delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE
    create_batch_size: int = DEFAULT_CREATE_BATCH_SIZE

    @classmethod
    def from_sources(
        cls,
        config_dir: Path | str | None = None,
        file_config: dict[str, Any] | None = None,
        credentials_file: Path | str | None = None,
        verbose: bool = False,
    ) -> AppConfig:
        """
        Build settings from the config file values and CLI overrides.

        CLI arguments win over config file values, which win over defaults.

        Args:
            config_dir: Explicit configuration directory (CLI or env)
            file_config: Validated values loaded from config.yaml
            credentials_file: Explicit client secrets path from the CLI
            verbose: Verbose flag from the CLI

        Returns:
            AppConfig instance

        Raises:
            ConfigError: If the merged format value is not supported
        """
        resolved_dir = resolve_config_dir(config_dir)
        values = file_config or {}

        if credentials_file is not None:
            secrets_path = Path(credentials_file).expanduser()
        elif values.get("credentials_file"):
            secrets_path = Path(values["credentials_file"]).expanduser()
        else:
            secrets_path = resolved_dir / CREDENTIALS_FILE_NAME

        log_dir = Path(values["log_dir"]).expanduser() if values.get("log_dir") else None

        default_format = values.get("default_format", DEFAULT_FORMAT)
        if default_format not in VALID_FORMATS:
            raise ConfigError(f"Unsupported default_format: {default_format}")

        return cls(
            config_dir=resolved_dir,
            credentials_file=secrets_path,
            token_file=resolved_dir / TOKEN_FILE_NAME,
            verbose=verbose or bool(values.get("verbose", False)),
            default_format=default_format,
            log_dir=log_dir,
            log_retention_count=values.get(
                "log_retention_count", DEFAULT_LOG_RETENTION_COUNT
            ),
            auth_timeout=values.get("auth_timeout", DEFAULT_AUTH_TIMEOUT),
            page_size=values.get("api_page_size", DEFAULT_PAGE_SIZE),
            rate_limit_delay=values.get("api_rate_limit_delay", DEFAULT_RATE_LIMIT_DELAY),
            delete_batch_size=values.get(
                "api_delete_batch_size", DEFAULT_DELETE_BATCH_SIZE
            ),
            create_batch_size=values.get(
                "api_create_batch_size", DEFAULT_CREATE_BATCH_SIZE
            ),
        )
