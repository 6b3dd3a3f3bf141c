"""
gcontacts_backup - Backup and restore Google Contacts.

Captures every contact and contact group of a Google account into a JSON
archive (or a Google-compatible CSV export) and restores an account from a
JSON archive.
"""

__version__ = "0.1.0"
