"""
In-memory backup archive.

An archive is the unit written by a backup run and read by a restore run::

    {
        "version": "1.0",
        "created_at": "2024-01-20T10:30:00.123456Z",
        "contact_count": 2,
        "group_count": 1,
        "contacts": [ ...People API person objects... ],
        "groups": [ ...People API contactGroup objects... ]
    }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from gcontacts_backup.sync.contact import Contact
from gcontacts_backup.sync.group import ContactGroup

# Current version of the backup file format
ARCHIVE_VERSION = "1.0"

logger = logging.getLogger(__name__)


class BackupError(Exception):
    """Raised when a backup file cannot be written or read."""

    pass


class BackupFormatError(BackupError):
    """Raised when a backup file is not a valid archive."""

    pass


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.

    Accepts a trailing Z and fractional seconds of any precision.

    Raises:
        ValueError: If the value is not an ISO 8601 timestamp
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Archive:
    """
    Full backup of one account's contacts and contact groups.

    The counts are always derived from the lists.

    Attributes:
        version: Backup file format version
        created_at: When the backup was taken (UTC)
        contacts: Every contact, as fetched
        groups: Every contact group, system groups included

    Usage:
        archive = Archive()
        for contact in contacts:
            archive.add_contact(contact)
        data = archive.to_dict()

        restored = Archive.from_dict(data)
    """

    version: str = ARCHIVE_VERSION
    created_at: datetime = field(default_factory=_utcnow)
    contacts: list[Contact] = field(default_factory=list)
    groups: list[ContactGroup] = field(default_factory=list)

    @property
    def contact_count(self) -> int:
        return len(self.contacts)

    @property
    def group_count(self) -> int:
        return len(self.groups)

    def add_contact(self, contact: Contact) -> None:
        self.contacts.append(contact)

    def add_group(self, group: ContactGroup) -> None:
        self.groups.append(group)

    def user_groups(self) -> list[ContactGroup]:
        """User-created groups only (system groups excluded)."""
        return [g for g in self.groups if g.is_user_group()]

    def group_names(self) -> dict[str, str]:
        """User group resource name -> display name."""
        return {g.resource_name: g.name for g in self.user_groups()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "created_at": format_timestamp(self.created_at),
            "contact_count": self.contact_count,
            "group_count": self.group_count,
            "contacts": [c.to_api_format() for c in self.contacts],
            "groups": [g.to_dict() for g in self.groups],
        }

    @classmethod
    def from_dict(cls, data: Any) -> Archive:
        """
        Build an Archive from its JSON form.

        Args:
            data: Parsed JSON document

        Returns:
            Archive instance

        Raises:
            BackupFormatError: If the version is missing or empty, or any
                part of the document has the wrong shape
        """
        if not isinstance(data, dict):
            raise BackupFormatError("Invalid backup file: expected a JSON object")

        version = data.get("version")
        if not version or not isinstance(version, str):
            raise BackupFormatError("Invalid backup file: missing version")

        created_raw = data.get("created_at")
        if not isinstance(created_raw, str):
            raise BackupFormatError("Invalid backup file: missing created_at")
        try:
            created_at = parse_timestamp(created_raw)
        except ValueError as e:
            raise BackupFormatError(
                f"Invalid backup file: bad created_at {created_raw!r}"
            ) from e

        contacts_raw = data.get("contacts") or []
        groups_raw = data.get("groups") or []
        if not isinstance(contacts_raw, list) or not isinstance(groups_raw, list):
            raise BackupFormatError(
                "Invalid backup file: contacts and groups must be lists"
            )

        try:
            contacts = [Contact.from_api_response(c) for c in contacts_raw]
            groups = [ContactGroup.from_api_response(g) for g in groups_raw]
        except ValueError as e:
            raise BackupFormatError(f"Invalid backup file: {e}") from e

        archive = cls(
            version=version, created_at=created_at, contacts=contacts, groups=groups
        )

        if data.get("contact_count", archive.contact_count) != archive.contact_count:
            logger.warning(
                f"Backup declares {data['contact_count']} contacts "
                f"but holds {archive.contact_count}"
            )
        if data.get("group_count", archive.group_count) != archive.group_count:
            logger.warning(
                f"Backup declares {data['group_count']} groups "
                f"but holds {archive.group_count}"
            )

        return archive
