"""
Preparing backed-up contacts for recreation.

A contact read from Google carries server-assigned data (resource name,
etag, person metadata, per-entry source metadata) that batchCreateContacts
rejects. It also references contact groups by resource names that stop
existing once the groups are deleted and recreated. This module turns such
a contact into a creatable one:

- every writable field group is copied, with entry metadata removed
- photos and person-level metadata are dropped
- myContacts membership is kept, other system memberships are dropped
- user group memberships are rewritten through the group remap, or dropped
  when the group has no new resource name
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from gcontacts_backup.sync.contact import FIELD_GROUPS, Contact
from gcontacts_backup.sync.group import PRESERVED_SYSTEM_GROUP, is_system_group_name

# Field groups that cannot be sent on create
READ_ONLY_GROUPS = frozenset({"photos", "memberships"})

# Field groups copied onto a creatable contact
WRITABLE_GROUPS = tuple(g for g in FIELD_GROUPS if g not in READ_ONLY_GROUPS)

logger = logging.getLogger(__name__)


def _strip_entry_metadata(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    cleaned = []
    for entry in entries:
        entry = copy.deepcopy(entry)
        if isinstance(entry, dict):
            entry.pop("metadata", None)
        cleaned.append(entry)
    return cleaned


def remap_memberships(
    memberships: list[dict[str, Any]], group_remap: dict[str, str]
) -> list[dict[str, Any]]:
    """
    Rewrite contact group memberships for a recreated contact.

    Args:
        memberships: Membership entries as returned by the People API
        group_remap: Old user group resource name -> new resource name

    Returns:
        New membership entries. The preserved system group is copied as-is
        (minus metadata); other system groups and unmapped user groups are
        left out.
    """
    result: list[dict[str, Any]] = []

    for membership in memberships:
        group_membership = membership.get("contactGroupMembership")
        if not group_membership:
            continue
        old_name = group_membership.get("contactGroupResourceName", "")

        if old_name == PRESERVED_SYSTEM_GROUP.value:
            kept = copy.deepcopy(membership)
            kept.pop("metadata", None)
            result.append(kept)
        elif is_system_group_name(old_name):
            continue
        elif old_name in group_remap:
            result.append(
                {
                    "contactGroupMembership": {
                        "contactGroupResourceName": group_remap[old_name]
                    }
                }
            )
        else:
            logger.debug(f"Dropping membership of unmapped group {old_name}")

    return result


def sanitize_contact(contact: Contact, group_remap: dict[str, str]) -> Contact:
    """
    Build a creatable copy of a backed-up contact.

    The input contact is not modified.

    Args:
        contact: Contact as stored in the backup
        group_remap: Old user group resource name -> new resource name

    Returns:
        Contact with no resource name, etag or metadata, ready to be sent in
        a batchCreateContacts request
    """
    fields: dict[str, list[dict[str, Any]]] = {}

    for group in WRITABLE_GROUPS:
        entries = contact.fields.get(group)
        if entries:
            fields[group] = _strip_entry_metadata(entries)

    memberships = remap_memberships(contact.entries("memberships"), group_remap)
    if memberships:
        fields["memberships"] = memberships

    return Contact(fields=fields)
