"""
Backup file persistence.

Provides functionality to:
- Write an archive as JSON (the only format a restore can read)
- Write an archive as a Google-compatible CSV export
- Load and validate a JSON archive for restore

Both writers go through a temporary file in the destination directory that
is moved into place once complete, so a failed write never leaves a
partial backup behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import IO

from gcontacts_backup.backup.archive import Archive, BackupError, BackupFormatError
from gcontacts_backup.backup.csv_export import write_csv

FORMAT_JSON = "json"
FORMAT_CSV = "csv"
SUPPORTED_FORMATS = (FORMAT_JSON, FORMAT_CSV)

logger = logging.getLogger(__name__)


class BackupManager:
    """
    Reads and writes backup archives.

    Usage:
        bm = BackupManager()

        # Save in either format
        bm.save(archive, Path("contacts.json"), "json")
        bm.save(archive, Path("contacts.csv"), "csv")

        # Load for restore
        archive = bm.load_json(Path("contacts.json"))
    """

    def _atomic_write(self, path: Path, write: Callable[[IO[str]], None]) -> None:
        """
        Write a text file through a temporary sibling file.

        Raises:
            BackupError: If the file cannot be written
        """
        path = Path(path).expanduser()
        directory = path.parent if str(path.parent) else Path(".")

        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=directory
            )
        except OSError as e:
            raise BackupError(f"Failed to write backup file {path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                write(f)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise BackupError(f"Failed to write backup file {path}: {e}") from e

    def save_json(self, archive: Archive, path: Path) -> Path:
        """
        Write the archive as pretty-printed JSON with every field kept.

        Args:
            archive: Archive to write
            path: Destination file

        Returns:
            Path written

        Raises:
            BackupError: If the file cannot be written
        """
        data = archive.to_dict()

        def write(f: IO[str]) -> None:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")

        self._atomic_write(path, write)
        logger.info(
            f"Saved backup of {archive.contact_count} contacts and "
            f"{archive.group_count} groups to {path}"
        )
        return Path(path)

    def save_csv(self, archive: Archive, path: Path) -> Path:
        """
        Write the archive as a Google-compatible CSV export.

        The CSV cannot be restored from.

        Raises:
            BackupError: If the file cannot be written
        """
        group_names = archive.group_names()

        def write(f: IO[str]) -> None:
            write_csv(archive.contacts, group_names, f)

        self._atomic_write(path, write)
        logger.info(f"Exported {archive.contact_count} contacts to CSV {path}")
        return Path(path)

    def save(self, archive: Archive, path: Path, fmt: str = FORMAT_JSON) -> Path:
        """
        Write the archive in the requested format.

        Raises:
            ValueError: If fmt is not "json" or "csv"
            BackupError: If the file cannot be written
        """
        if fmt == FORMAT_JSON:
            return self.save_json(archive, path)
        if fmt == FORMAT_CSV:
            return self.save_csv(archive, path)
        raise ValueError(f"Unsupported backup format: {fmt}")

    def load_json(self, path: Path) -> Archive:
        """
        Load and validate a JSON archive.

        Args:
            path: Backup file to read

        Returns:
            Archive instance

        Raises:
            BackupError: If the file cannot be read
            BackupFormatError: If it is not valid JSON or not a valid archive
        """
        path = Path(path).expanduser()
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BackupFormatError(f"Failed to parse backup file {path}: {e}") from e
        except OSError as e:
            raise BackupError(f"Failed to read backup file {path}: {e}") from e

        archive = Archive.from_dict(data)
        logger.info(
            f"Loaded backup from {path}: {archive.contact_count} contacts, "
            f"{archive.group_count} groups"
        )
        return archive
