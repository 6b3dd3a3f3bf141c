"""CLI package for gcontacts_backup."""

from gcontacts_backup.cli.main import cli, get_config_file
from gcontacts_backup.cli.progress import ProgressDisplay
from gcontacts_backup.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "ProgressDisplay",
    "cli",
    "get_config_file",
]
