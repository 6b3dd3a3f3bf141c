"""
Google-compatible CSV export of a backup archive.

The export is lossy and write-only. Repeated fields (emails, phones,
addresses, events, relations, websites, custom fields) get as many column
groups as the contact with the most entries needs, so every row has the
same width.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import IO, Any

from gcontacts_backup.sync.contact import Contact
from gcontacts_backup.sync.group import is_system_group_name

# Singular columns, filled from the first entry of their field group
BASE_HEADERS = [
    "Name Prefix",
    "First Name",
    "Middle Name",
    "Last Name",
    "Name Suffix",
    "Phonetic First Name",
    "Phonetic Middle Name",
    "Phonetic Last Name",
    "Nickname",
    "File As",
    "Birthday",
    "Organization Name",
    "Organization Title",
    "Organization Department",
]

TRAILING_HEADERS = ["Notes", "Labels"]

# (API key, field label) for address columns after the type label
ADDRESS_PARTS = [
    ("streetAddress", "Street"),
    ("extendedAddress", "Extended Address"),
    ("city", "City"),
    ("region", "Region"),
    ("postalCode", "Postal Code"),
    ("country", "Country"),
    ("poBox", "PO Box"),
]

# Separator between group names in the Labels column
LABEL_SEPARATOR = " ::: "

_LABEL_NAMES = {
    "home": "Home",
    "work": "Work",
    "mobile": "Mobile",
    "main": "Main",
    "other": "Other",
    "homefax": "Home Fax",
    "workfax": "Work Fax",
    "pager": "Pager",
}


@dataclass
class FieldCounts:
    """Maximum number of entries of each repeated field across all contacts."""

    emails: int = 0
    phones: int = 0
    addresses: int = 0
    events: int = 0
    relations: int = 0
    websites: int = 0
    custom_fields: int = 0


def count_max_fields(contacts: list[Contact]) -> FieldCounts:
    """
    Scan all contacts for the widest entry count of each repeated field.

    Emails and phones are reported as at least 1 so the export always has
    their columns.
    """
    counts = FieldCounts()
    for contact in contacts:
        counts.emails = max(counts.emails, len(contact.entries("emailAddresses")))
        counts.phones = max(counts.phones, len(contact.entries("phoneNumbers")))
        counts.addresses = max(counts.addresses, len(contact.entries("addresses")))
        counts.events = max(counts.events, len(contact.entries("events")))
        counts.relations = max(counts.relations, len(contact.entries("relations")))
        counts.websites = max(counts.websites, len(contact.entries("urls")))
        counts.custom_fields = max(
            counts.custom_fields, len(contact.entries("userDefined"))
        )

    counts.emails = max(counts.emails, 1)
    counts.phones = max(counts.phones, 1)
    return counts


def _pair_headers(prefix: str, count: int) -> list[str]:
    headers = []
    for i in range(1, count + 1):
        headers.append(f"{prefix} {i} - Label")
        headers.append(f"{prefix} {i} - Value")
    return headers


def build_headers(counts: FieldCounts) -> list[str]:
    """Header row for the given field counts."""
    headers = list(BASE_HEADERS)
    headers += _pair_headers("Email", counts.emails)
    headers += _pair_headers("Phone", counts.phones)
    for i in range(1, counts.addresses + 1):
        headers.append(f"Address {i} - Label")
        headers += [f"Address {i} - {part}" for _, part in ADDRESS_PARTS]
    headers += _pair_headers("Event", counts.events)
    headers += _pair_headers("Relation", counts.relations)
    headers += _pair_headers("Website", counts.websites)
    headers += _pair_headers("Custom Field", counts.custom_fields)
    headers += TRAILING_HEADERS
    return headers


def normalize_label(label: str | None) -> str:
    """
    Turn an API type value into a display label.

    "TYPE_" prefixes are removed, the rest is lower-cased and capitalised,
    and well-known values get their usual spelling ("homeFax" -> "Home Fax").
    """
    if not label:
        return ""
    label = label.removeprefix("TYPE_").lower()
    return _LABEL_NAMES.get(label, label[:1].upper() + label[1:])


def format_date(date: dict[str, Any] | None) -> str:
    """
    Format a People API date as YYYY-MM-DD, or --MM-DD when the year is unknown.
    """
    if not date:
        return ""
    year = date.get("year") or 0
    month = date.get("month") or 0
    day = date.get("day") or 0
    if year > 0:
        return f"{year:04d}-{month:02d}-{day:02d}"
    return f"--{month:02d}-{day:02d}"


def extract_labels(contact: Contact, group_names: dict[str, str]) -> list[str]:
    """Names of the user groups a contact belongs to, in membership order."""
    labels = []
    for resource_name in contact.group_resource_names:
        if is_system_group_name(resource_name):
            continue
        name = group_names.get(resource_name)
        if name:
            labels.append(name)
    return labels


def _pairs(
    entries: list[dict[str, Any]], count: int, value_key: str
) -> list[str]:
    row: list[str] = []
    for i in range(count):
        if i < len(entries):
            entry = entries[i]
            row += [normalize_label(entry.get("type")), entry.get(value_key, "")]
        else:
            row += ["", ""]
    return row


def contact_to_row(
    contact: Contact, counts: FieldCounts, group_names: dict[str, str]
) -> list[str]:
    """
    One CSV row for a contact, padded to the header width.

    Args:
        contact: Contact to export
        counts: Column counts shared by every row
        group_names: User group resource name -> display name

    Returns:
        Row values in header order
    """
    name = contact.first("names")
    birthday = contact.first("birthdays")
    org = contact.first("organizations")

    row = [
        name.get("honorificPrefix", ""),
        name.get("givenName", ""),
        name.get("middleName", ""),
        name.get("familyName", ""),
        name.get("honorificSuffix", ""),
        name.get("phoneticGivenName", ""),
        name.get("phoneticMiddleName", ""),
        name.get("phoneticFamilyName", ""),
        contact.first("nicknames").get("value", ""),
        contact.first("fileAses").get("value", ""),
        format_date(birthday.get("date")),
        org.get("name", ""),
        org.get("title", ""),
        org.get("department", ""),
    ]

    row += _pairs(contact.entries("emailAddresses"), counts.emails, "value")
    row += _pairs(contact.entries("phoneNumbers"), counts.phones, "value")

    addresses = contact.entries("addresses")
    for i in range(counts.addresses):
        if i < len(addresses):
            address = addresses[i]
            row.append(normalize_label(address.get("type")))
            row += [address.get(key, "") for key, _ in ADDRESS_PARTS]
        else:
            row += [""] * (len(ADDRESS_PARTS) + 1)

    events = contact.entries("events")
    for i in range(counts.events):
        if i < len(events):
            event = events[i]
            row += [normalize_label(event.get("type")), format_date(event.get("date"))]
        else:
            row += ["", ""]

    row += _pairs(contact.entries("relations"), counts.relations, "person")
    row += _pairs(contact.entries("urls"), counts.websites, "value")

    custom = contact.entries("userDefined")
    for i in range(counts.custom_fields):
        if i < len(custom):
            row += [custom[i].get("key", ""), custom[i].get("value", "")]
        else:
            row += ["", ""]

    row.append(contact.first("biographies").get("value", ""))
    row.append(LABEL_SEPARATOR.join(extract_labels(contact, group_names)))
    return row


def write_csv(
    contacts: list[Contact], group_names: dict[str, str], stream: IO[str]
) -> int:
    """
    Write contacts as CSV to an open text stream.

    Args:
        contacts: Contacts to export
        group_names: User group resource name -> display name
        stream: Text stream opened with newline=""

    Returns:
        Number of data rows written
    """
    counts = count_max_fields(contacts)
    writer = csv.writer(stream)
    writer.writerow(build_headers(counts))
    for contact in contacts:
        writer.writerow(contact_to_row(contact, counts, group_names))
    return len(contacts)
