"""
Backup and restore file formats for contact data.

This module provides the archive model, its JSON persistence, and the
write-only CSV export.
"""

from gcontacts_backup.backup.archive import (
    ARCHIVE_VERSION,
    Archive,
    BackupError,
    BackupFormatError,
)
from gcontacts_backup.backup.manager import SUPPORTED_FORMATS, BackupManager

__all__ = [
    "ARCHIVE_VERSION",
    "Archive",
    "BackupError",
    "BackupFormatError",
    "BackupManager",
    "SUPPORTED_FORMATS",
]
