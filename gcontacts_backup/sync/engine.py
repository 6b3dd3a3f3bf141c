"""
Backup and restore engine for Google Contacts.

Sequences authentication, the People API client and the backup store into
the two user-facing operations:

- capture: authenticate, fetch groups, fetch contacts, write an archive
- restore: load the archive, authenticate, confirm, delete every contact,
  delete user groups (best effort), recreate groups (all or nothing),
  recreate contacts (all or nothing)

Each step runs only if the previous one succeeded. Nothing is undone when
a later step fails.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from google.oauth2.credentials import Credentials

from gcontacts_backup.api.people_api import PeopleAPI
from gcontacts_backup.auth.google_auth import GoogleAuth
from gcontacts_backup.auth.token_store import TokenStore
from gcontacts_backup.backup.archive import Archive
from gcontacts_backup.backup.manager import SUPPORTED_FORMATS, BackupManager
from gcontacts_backup.config.settings import AppConfig
from gcontacts_backup.utils.paths import default_output_path

# Step names passed to progress callbacks
STEP_FETCH_CONTACTS = "fetch_contacts"
STEP_DELETE_CONTACTS = "delete_contacts"
STEP_DELETE_GROUPS = "delete_groups"
STEP_CREATE_GROUPS = "create_groups"
STEP_CREATE_CONTACTS = "create_contacts"

StepProgress = Callable[[str, int, int], None]
ConfirmCallback = Callable[[Archive], bool]

logger = logging.getLogger(__name__)


@dataclass
class CaptureResult:
    """Outcome of a backup run."""

    path: Path
    format: str
    contact_count: int = 0
    group_count: int = 0


@dataclass
class RestoreResult:
    """
    Outcome of a restore run.

    When cancelled is True no remote data was changed.
    """

    archive: Archive
    cancelled: bool = False
    contacts_deleted: int = 0
    groups_deleted: int = 0
    groups_created: int = 0
    contacts_created: int = 0


def _step_callback(
    on_progress: StepProgress | None, step: str
) -> Callable[[int, int], None] | None:
    if on_progress is None:
        return None

    def report(current: int, total: int) -> None:
        on_progress(step, current, total)

    return report


class BackupEngine:
    """
    Runs backup and restore for one account.

    Attributes:
        config: Settings for this invocation
        auth: Token lifecycle manager
        backup_manager: Archive reader/writer

    Usage:
        engine = BackupEngine(AppConfig.from_sources())

        result = engine.capture(fmt="json", output_path=Path("contacts.json"))

        result = engine.restore(
            Path("contacts.json"), confirm=lambda archive: True
        )
    """

    def __init__(
        self,
        config: AppConfig,
        auth: GoogleAuth | None = None,
        api_factory: Callable[[Credentials], PeopleAPI] | None = None,
        backup_manager: BackupManager | None = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Settings for this invocation
            auth: Authentication manager (default: built from config)
            api_factory: Builds a PeopleAPI from credentials
                (default: PeopleAPI sized by config)
            backup_manager: Archive reader/writer (default: BackupManager())
        """
        self.config = config
        self.auth = auth or GoogleAuth(
            config_dir=config.config_dir,
            credentials_path=config.credentials_file,
            token_store=TokenStore(config.token_file),
            auth_timeout=config.auth_timeout,
        )
        self._api_factory = api_factory or self._default_api
        self.backup_manager = backup_manager or BackupManager()

    def _default_api(self, credentials: Credentials) -> PeopleAPI:
        return PeopleAPI(
            credentials,
            page_size=self.config.page_size,
            delete_batch_size=self.config.delete_batch_size,
            create_batch_size=self.config.create_batch_size,
            rate_limit_delay=self.config.rate_limit_delay,
        )

    def _connect(self, cancel_event: threading.Event | None) -> PeopleAPI:
        credentials = self.auth.authenticate(cancel_event=cancel_event)
        return self._api_factory(credentials)

    def capture(
        self,
        fmt: str | None = None,
        output_path: Path | None = None,
        on_progress: StepProgress | None = None,
        cancel_event: threading.Event | None = None,
    ) -> CaptureResult:
        """
        Back up every contact and contact group.

        All fetching happens before anything is written, so a failed fetch
        never leaves a file behind.

        Args:
            fmt: "json" or "csv" (default: config.default_format)
            output_path: Destination (default: contacts-YYYYMMDD-HHMMSS.<fmt>)
            on_progress: Called with (step, current, total)
            cancel_event: Abandons a pending browser authorization when set

        Returns:
            CaptureResult describing the written file

        Raises:
            ValueError: If fmt is not supported
            AuthenticationError: If authentication fails
            PeopleAPIError: If fetching fails
            BackupError: If the file cannot be written
        """
        fmt = fmt or self.config.default_format
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported backup format: {fmt}")
        path = Path(output_path) if output_path else default_output_path(fmt)

        logger.info(f"Starting {fmt} backup to {path}")
        api = self._connect(cancel_event)

        groups = api.list_contact_groups()
        contacts = api.list_contacts(
            progress_callback=_step_callback(on_progress, STEP_FETCH_CONTACTS)
        )

        archive = Archive()
        for group in groups:
            archive.add_group(group)
        for contact in contacts:
            archive.add_contact(contact)

        self.backup_manager.save(archive, path, fmt)

        return CaptureResult(
            path=path,
            format=fmt,
            contact_count=archive.contact_count,
            group_count=archive.group_count,
        )

    def load_archive(self, input_path: Path) -> Archive:
        """
        Load and validate a JSON archive.

        Raises:
            BackupError: If the file cannot be read
            BackupFormatError: If the file is not a valid archive
        """
        archive = self.backup_manager.load_json(Path(input_path))
        if not archive.contacts:
            logger.warning(f"Backup {input_path} contains no contacts")
        return archive

    def restore(
        self,
        input_path: Path,
        confirm: ConfirmCallback | None = None,
        on_progress: StepProgress | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RestoreResult:
        """
        Replace every contact and user group with the contents of a backup.

        Args:
            input_path: JSON archive to restore
            confirm: Called with the loaded archive after authentication;
                returning False cancels before anything is changed. None
                skips confirmation.
            on_progress: Called with (step, current, total)
            cancel_event: Abandons a pending browser authorization when set

        Returns:
            RestoreResult with the counts of each step

        Raises:
            BackupError: If the archive cannot be read or is invalid
            AuthenticationError: If authentication fails
            PeopleAPIError: If deleting contacts, listing groups, creating
                groups or creating contacts fails
        """
        archive = self.load_archive(input_path)
        result = RestoreResult(archive=archive)

        api = self._connect(cancel_event)

        if confirm is not None and not confirm(archive):
            logger.info("Restore cancelled by user")
            result.cancelled = True
            return result

        logger.info(
            f"Restoring {archive.contact_count} contacts and "
            f"{len(archive.user_groups())} user groups from {input_path}"
        )

        logger.info("Deleting existing contacts")
        result.contacts_deleted = api.delete_all_contacts(
            progress_callback=_step_callback(on_progress, STEP_DELETE_CONTACTS)
        )

        logger.info("Deleting existing user groups")
        result.groups_deleted = api.delete_user_contact_groups(
            progress_callback=_step_callback(on_progress, STEP_DELETE_GROUPS)
        )

        logger.info("Creating contact groups")
        group_remap = api.create_contact_groups(
            archive.groups,
            progress_callback=_step_callback(on_progress, STEP_CREATE_GROUPS),
        )
        result.groups_created = len(group_remap)

        logger.info("Creating contacts")
        result.contacts_created = api.create_contacts(
            archive.contacts,
            group_remap,
            progress_callback=_step_callback(on_progress, STEP_CREATE_CONTACTS),
        )

        logger.info(
            f"Restore complete: {result.contacts_created} contacts, "
            f"{result.groups_created} groups"
        )
        return result
