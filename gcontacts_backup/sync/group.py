"""
ContactGroup data model for Google Contacts backup and restore.

Provides a ContactGroup representation with methods for:
- Converting to/from Google People API contactGroups format
- Telling system groups from user-created groups
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Group types as defined by Google People API
GROUP_TYPE_UNSPECIFIED = "GROUP_TYPE_UNSPECIFIED"
GROUP_TYPE_USER_CONTACT_GROUP = "USER_CONTACT_GROUP"
GROUP_TYPE_SYSTEM_CONTACT_GROUP = "SYSTEM_CONTACT_GROUP"


class SystemGroup(str, Enum):
    """
    Well-known system contact groups, matched by exact resource name.

    System groups exist in every account; they can be neither created nor
    deleted.
    """

    MY_CONTACTS = "contactGroups/myContacts"
    STARRED = "contactGroups/starred"
    CHAT_BUDDIES = "contactGroups/chatBuddies"
    ALL = "contactGroups/all"
    FRIENDS = "contactGroups/friends"
    FAMILY = "contactGroups/family"
    COWORKERS = "contactGroups/coworkers"
    BLOCKED = "contactGroups/blocked"

    @classmethod
    def from_resource_name(cls, resource_name: str) -> SystemGroup | None:
        """Return the matching system group, or None for any other name."""
        try:
            return cls(resource_name)
        except ValueError:
            return None


# Membership kept verbatim when a contact is recreated
PRESERVED_SYSTEM_GROUP = SystemGroup.MY_CONTACTS


def is_system_group_name(resource_name: str) -> bool:
    """Check whether a resource name refers to a well-known system group."""
    return SystemGroup.from_resource_name(resource_name) is not None


@dataclass
class ContactGroup:
    """
    Contact group (label) as stored in a backup.

    Attributes:
        resource_name: Google's unique ID (e.g., "contactGroups/123abc")
        etag: Server version tag
        name: Display name of the group (e.g., "Family", "Work")
        group_type: USER_CONTACT_GROUP or SYSTEM_CONTACT_GROUP
        extras: Any other keys the service returned (formattedName,
            memberCount, metadata, ...), kept for a lossless backup

    Usage:
        group = ContactGroup.from_api_response(api_response)

        if group.is_user_group():
            names.append(group.name)
    """

    resource_name: str
    etag: str
    name: str
    group_type: str
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api_response(cls, group_data: dict[str, Any]) -> ContactGroup:
        """
        Create a ContactGroup from a Google People API response.

        Args:
            group_data: Dictionary from Google People API containing group data

        Returns:
            ContactGroup instance populated from the API response

        Raises:
            ValueError: If group_data is not a mapping or a known key is not
                a string

        Example API response structure::

            {
                'resourceName': 'contactGroups/123abc',
                'etag': 'xyz789',
                'name': 'My Custom Group',
                'formattedName': 'My Custom Group',
                'groupType': 'USER_CONTACT_GROUP',
                'memberCount': 5,
                'metadata': {'updateTime': '2024-01-01T00:00:00Z'}
            }
        """
        if not isinstance(group_data, dict):
            raise ValueError(
                f"Expected a contact group object, got {type(group_data).__name__}"
            )

        data = copy.deepcopy(group_data)
        group = cls(
            resource_name=data.pop("resourceName", "") or "",
            etag=data.pop("etag", "") or "",
            name=data.pop("name", "") or "",
            group_type=data.pop("groupType", GROUP_TYPE_UNSPECIFIED),
            extras=data,
        )
        for key in ("resource_name", "etag", "name", "group_type"):
            if not isinstance(getattr(group, key), str):
                raise ValueError(f"Contact group {key} must be a string")
        return group

    def to_dict(self) -> dict[str, Any]:
        """
        Full API-shaped dictionary, as written to a backup archive.
        """
        data: dict[str, Any] = {
            "resourceName": self.resource_name,
            "etag": self.etag,
            "name": self.name,
            "groupType": self.group_type,
        }
        data.update(copy.deepcopy(self.extras))
        return data

    def is_user_group(self) -> bool:
        """
        Check if this is a user-created contact group.

        A group named in the system table is never a user group, whatever
        its recorded type.
        """
        return (
            self.group_type == GROUP_TYPE_USER_CONTACT_GROUP
            and not is_system_group_name(self.resource_name)
        )

    def __repr__(self) -> str:
        return (
            f"ContactGroup(resource_name={self.resource_name!r}, "
            f"name={self.name!r}, "
            f"group_type={self.group_type!r})"
        )
