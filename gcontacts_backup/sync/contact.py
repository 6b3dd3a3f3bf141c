"""
Contact data model for Google Contacts backup and restore.

Provides a lossless Contact representation with methods for:
- Converting to/from Google People API person format
- Reading common fields (display name, memberships) without flattening
  the record
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

# Repeatable field groups of a People API person, in the order they are
# requested and written back. Each maps to a list of entries.
FIELD_GROUPS = (
    "names",
    "nicknames",
    "fileAses",
    "emailAddresses",
    "phoneNumbers",
    "addresses",
    "organizations",
    "birthdays",
    "biographies",
    "urls",
    "photos",
    "userDefined",
    "events",
    "relations",
    "memberships",
    "occupations",
    "genders",
    "imClients",
    "interests",
    "sipAddresses",
    "calendarUrls",
    "externalIds",
    "locales",
    "locations",
    "miscKeywords",
    "clientData",
)

# Top-level keys assigned by the service
RESOURCE_NAME_KEY = "resourceName"
ETAG_KEY = "etag"
METADATA_KEY = "metadata"


def _check_entries(group: str, entries: Any) -> list[dict[str, Any]]:
    """Reject a field group that is not a list of objects."""
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ValueError(f"Field group '{group}' must be a list of objects")
    return entries


@dataclass
class Contact:
    """
    One person record, kept in People API shape for full fidelity.

    Attributes:
        resource_name: Google's unique ID (e.g., "people/c12345"); empty for
            a record that has not been created yet
        etag: Server version tag
        fields: Repeatable field groups keyed by API name
            (e.g. "emailAddresses" -> [{"value": ..., "type": ...}])
        metadata: Person-level metadata assigned by the service
        extras: Any other top-level keys the service returned

    Usage:
        # Create from API response
        contact = Contact.from_api_response(person)

        # Convert back to API format (round-trips exactly)
        person = contact.to_api_format()
    """

    resource_name: str = ""
    etag: str = ""
    fields: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    metadata: dict[str, Any] | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api_response(cls, person: dict[str, Any]) -> Contact:
        """
        Create a Contact from a Google People API person.

        Args:
            person: Dictionary from Google People API containing contact data

        Returns:
            Contact instance holding a deep copy of the data

        Raises:
            ValueError: If person is not a mapping or a field group is not a
                list of objects

        Example API response structure::

            {
                'resourceName': 'people/c12345',
                'etag': '%EgUBAi43PRoEAQIFByIM',
                'metadata': {'sources': [{'type': 'CONTACT', 'id': '...'}]},
                'names': [{'displayName': 'John Doe', 'metadata': {...}}],
                'emailAddresses': [{'value': 'john@example.com', 'type': 'home'}],
                'memberships': [
                    {'contactGroupMembership': {
                        'contactGroupResourceName': 'contactGroups/myContacts'}}
                ]
            }
        """
        if not isinstance(person, dict):
            raise ValueError(f"Expected a person object, got {type(person).__name__}")

        data = copy.deepcopy(person)
        resource_name = data.pop(RESOURCE_NAME_KEY, "") or ""
        etag = data.pop(ETAG_KEY, "") or ""
        metadata = data.pop(METADATA_KEY, None)
        if not isinstance(resource_name, str) or not isinstance(etag, str):
            raise ValueError("resourceName and etag must be strings")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValueError("Person metadata must be an object")

        fields: dict[str, list[dict[str, Any]]] = {}
        for group in FIELD_GROUPS:
            if group in data:
                fields[group] = _check_entries(group, data.pop(group))

        for membership in fields.get("memberships", []):
            group_membership = membership.get("contactGroupMembership") or {}
            if not isinstance(group_membership, dict) or not isinstance(
                group_membership.get("contactGroupResourceName") or "", str
            ):
                raise ValueError(
                    f"{resource_name or 'contact'}: malformed contactGroupMembership"
                )

        return cls(
            resource_name=resource_name,
            etag=etag,
            fields=fields,
            metadata=metadata,
            extras=data,
        )

    def to_api_format(self) -> dict[str, Any]:
        """
        Convert back to Google People API person format.

        Server-assigned keys are included only when present, so a record
        read from the service serializes to the same object it came from.

        Returns:
            Dictionary in Google People API person format
        """
        person: dict[str, Any] = {}
        if self.resource_name:
            person[RESOURCE_NAME_KEY] = self.resource_name
        if self.etag:
            person[ETAG_KEY] = self.etag
        if self.metadata is not None:
            person[METADATA_KEY] = copy.deepcopy(self.metadata)

        for group in FIELD_GROUPS:
            if group in self.fields:
                person[group] = copy.deepcopy(self.fields[group])

        person.update(copy.deepcopy(self.extras))
        return person

    def entries(self, group: str) -> list[dict[str, Any]]:
        """Entries of a field group, or an empty list."""
        return self.fields.get(group) or []

    def first(self, group: str) -> dict[str, Any]:
        """First entry of a field group, or an empty dict."""
        values = self.entries(group)
        return values[0] if values else {}

    @property
    def display_name(self) -> str:
        name = self.first("names")
        display = name.get("displayName", "")
        if not display:
            parts = [p for p in (name.get("givenName"), name.get("familyName")) if p]
            display = " ".join(parts)
        return display

    @property
    def group_resource_names(self) -> list[str]:
        """Resource names of every contact group this record belongs to."""
        names = []
        for membership in self.entries("memberships"):
            group_membership = membership.get("contactGroupMembership") or {}
            resource_name = group_membership.get("contactGroupResourceName")
            if resource_name:
                names.append(resource_name)
        return names

    def __repr__(self) -> str:
        return (
            f"Contact(resource_name={self.resource_name!r}, "
            f"display_name={self.display_name!r}, "
            f"fields={sorted(self.fields)})"
        )
