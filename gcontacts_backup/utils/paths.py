"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the gcontacts-backup configuration
directory across all modules.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".gcontacts-backup"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "GCONTACTS_BACKUP_CONFIG_DIR"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. GCONTACTS_BACKUP_CONFIG_DIR environment variable
        3. Default directory (~/.gcontacts-backup)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def default_output_path(fmt: str, now: datetime | None = None) -> Path:
    """
    Build the default archive filename for a backup run.

    Args:
        fmt: Output format ("json" or "csv")
        now: Timestamp to embed (defaults to the current local time)

    Returns:
        Relative path like contacts-20240120-103000.json
    """
    timestamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    suffix = "csv" if fmt.lower() == "csv" else "json"
    return Path(f"contacts-{timestamp}.{suffix}")
