"""
Configuration file generator for gcontacts-backup.

Provides functionality to generate a default configuration file with
documentation for every available option.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Every option is commented out so the generated file changes nothing
    until the user edits it.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Google Contacts Backup Configuration
# ====================================
#
# Default options for gcontacts-backup.
# CLI arguments always override these values.
#
# To use this configuration:
#   1. Save as ~/.gcontacts-backup/config.yaml (or custom location)
#   2. Uncomment and modify options as needed
#   3. Run gcontacts-backup commands normally

# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for daily log files
# Default: ~/.gcontacts-backup/logs
# log_dir: /path/to/logs

# Number of daily log files to keep (0 keeps all)
# Default: 10
# log_retention_count: 10


# Authentication
# --------------

# OAuth client secrets downloaded from Google Cloud Console
# Default: ~/.gcontacts-backup/credentials.json
# credentials_file: /path/to/credentials.json

# Seconds to wait for the browser authorization to complete
# Default: 300
# auth_timeout: 300


# Backup Output
# -------------

# Archive format used by 'backup' when --format is not given
# Options:
#   - json: full backup, the only format 'restore' accepts
#   - csv:  Google-compatible CSV for the Google Contacts import page
# Default: json
# default_format: json


# People API
# ----------

# Contacts requested per page when listing (1-1000)
# Default: 1000
# api_page_size: 1000

# Seconds to pause after each API call to stay under rate limits
# Default: 0.1
# api_rate_limit_delay: 0.1

# Contacts deleted per batch request during restore (1-500)
# Default: 500
# api_delete_batch_size: 500

# Contacts created per batch request during restore (1-200)
# Default: 200
# api_create_batch_size: 200
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves
    the configuration with secure permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
        Returns (True, None) on success, (False, error_message) on failure
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
