"""
gcontacts_backup.sync - Contact models and restore preparation

The backup/restore engine lives in gcontacts_backup.sync.engine.
"""

from gcontacts_backup.sync.contact import Contact
from gcontacts_backup.sync.group import ContactGroup, SystemGroup
from gcontacts_backup.sync.sanitize import remap_memberships, sanitize_contact

__all__ = [
    "Contact",
    "ContactGroup",
    "SystemGroup",
    "remap_memberships",
    "sanitize_contact",
]
