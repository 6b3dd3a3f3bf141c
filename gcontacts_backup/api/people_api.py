"""
Google People API wrapper for contact backup and restore.

Provides a high-level interface to the Google People API for:
- Listing contacts and contact groups with pagination
- Deleting every contact in batches and every user contact group
- Recreating contact groups and contacts from a backup
- A flat delay after each call to stay under the API rate limit

Calls are never retried. Any failure is wrapped in PeopleAPIError naming
the operation (and batch) that failed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from gcontacts_backup.sync.contact import Contact
from gcontacts_backup.sync.group import ContactGroup
from gcontacts_backup.sync.sanitize import sanitize_contact

# Person fields to request from the API
PERSON_FIELDS = ",".join(
    [
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
        "metadata",
    ]
)

# Contact group fields to request from the API
GROUP_FIELDS = "name,groupType,memberCount,metadata,clientData"

# Fields returned for each created contact
CREATE_READ_MASK = "names"
CREATE_SOURCES = ["READ_SOURCE_TYPE_CONTACT"]

# Maximum number of items per page when listing (API max)
DEFAULT_PAGE_SIZE = 1000

# Maximum contacts per batchDeleteContacts request (API max)
DEFAULT_DELETE_BATCH_SIZE = 500

# Maximum contacts per batchCreateContacts request (API max)
DEFAULT_CREATE_BATCH_SIZE = 200

# Seconds to sleep after each API call
DEFAULT_RATE_LIMIT_DELAY = 0.1

ProgressCallback = Callable[[int, int], None]

logger = logging.getLogger(__name__)


class PeopleAPIError(Exception):
    """Raised when a People API operation fails."""

    pass


class RateLimitError(PeopleAPIError):
    """Raised when the API rejects a call for exceeding the rate limit."""

    pass


def _report(progress_callback: ProgressCallback | None, current: int, total: int) -> None:
    if progress_callback is not None:
        progress_callback(current, total)


class PeopleAPI:
    """
    Google People API wrapper for backup and restore operations.

    Attributes:
        credentials: Google OAuth2 credentials
        service: Google API service object

    Usage:
        api = PeopleAPI(credentials)

        # Fetch everything
        contacts = api.list_contacts(progress_callback=on_progress)
        groups = api.list_contact_groups()

        # Wipe and recreate
        api.delete_all_contacts()
        api.delete_user_contact_groups()
        remap = api.create_contact_groups(groups)
        api.create_contacts(contacts, remap)
    """

    def __init__(
        self,
        credentials: Credentials,
        page_size: int = DEFAULT_PAGE_SIZE,
        delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
        create_batch_size: int = DEFAULT_CREATE_BATCH_SIZE,
        rate_limit_delay: float = DEFAULT_RATE_LIMIT_DELAY,
    ):
        """
        Initialize the People API wrapper.

        Args:
            credentials: Valid Google OAuth2 credentials with contacts scope
            page_size: Number of items per page when listing (default 1000)
            delete_batch_size: Contacts per batch delete request (default 500)
            create_batch_size: Contacts per batch create request (default 200)
            rate_limit_delay: Seconds to sleep after each call (default 0.1)
        """
        self.credentials = credentials
        self.page_size = min(page_size, DEFAULT_PAGE_SIZE)
        self.delete_batch_size = min(delete_batch_size, DEFAULT_DELETE_BATCH_SIZE)
        self.create_batch_size = min(create_batch_size, DEFAULT_CREATE_BATCH_SIZE)
        self.rate_limit_delay = rate_limit_delay
        self._service = None

    @property
    def service(self) -> Any:
        """
        Get or create the Google API service object.

        Returns:
            Google People API service resource

        Raises:
            PeopleAPIError: If service cannot be created
        """
        if self._service is None:
            try:
                self._service = build(
                    "people", "v1", credentials=self.credentials, cache_discovery=False
                )
                logger.debug("Created People API service")
            except Exception as e:
                logger.error(f"Failed to create People API service: {e}")
                raise PeopleAPIError(f"Failed to create API service: {e}") from e
        return self._service

    def _execute(self, operation: Callable[[], Any], operation_name: str) -> Any:
        """
        Execute a single API call, wrapping failures with call context.

        Args:
            operation: Callable to execute
            operation_name: Name used in log and error messages

        Returns:
            Result of the operation

        Raises:
            RateLimitError: If the API answered 429
            PeopleAPIError: For any other API or transport failure
        """
        try:
            return operation()
        except HttpError as e:
            status_code = e.resp.status
            logger.error(f"{operation_name} failed with status {status_code}: {e}")
            if status_code == 429:
                raise RateLimitError(
                    f"Rate limit exceeded for {operation_name}: {e}"
                ) from e
            raise PeopleAPIError(f"{operation_name} failed: {e}") from e
        except OSError as e:
            logger.error(f"{operation_name} failed: {e}")
            raise PeopleAPIError(f"{operation_name} failed: {e}") from e

    def _pause(self) -> None:
        if self.rate_limit_delay > 0:
            time.sleep(self.rate_limit_delay)

    # ========== Fetch ==========

    def list_contacts(
        self, progress_callback: ProgressCallback | None = None
    ) -> list[Contact]:
        """
        List all contacts of the authenticated user.

        Args:
            progress_callback: Called with (fetched so far, declared total)
                after each page. The total comes from the first page and is
                0 when the API does not report it.

        Returns:
            List of Contact objects in API order

        Raises:
            PeopleAPIError: If any page request fails
        """
        logger.debug("Listing contacts")

        contacts: list[Contact] = []
        page_token: str | None = None
        total = 0
        page_num = 0

        while True:
            page_num += 1
            params: dict[str, Any] = {
                "resourceName": "people/me",
                "personFields": PERSON_FIELDS,
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.people().connections().list(**p).execute()

            response = self._execute(execute_list, f"list_contacts(page {page_num})")

            if page_num == 1:
                total = int(response.get("totalPeople") or response.get("totalItems") or 0)

            for person in response.get("connections", []):
                contacts.append(Contact.from_api_response(person))

            logger.debug(f"Fetched page {page_num}: {len(contacts)} contacts so far")
            _report(progress_callback, len(contacts), total)

            page_token = response.get("nextPageToken")
            if not page_token:
                break

            self._pause()

        logger.info(f"Listed {len(contacts)} contacts")
        return contacts

    def list_contact_groups(self) -> list[ContactGroup]:
        """
        List all contact groups for the authenticated user.

        Returns both user-created groups and system groups (myContacts,
        starred, ...).

        Returns:
            List of ContactGroup objects in API order

        Raises:
            PeopleAPIError: If any page request fails
        """
        logger.debug("Listing contact groups")

        groups: list[ContactGroup] = []
        page_token: str | None = None
        page_num = 0

        while True:
            page_num += 1
            params: dict[str, Any] = {
                "pageSize": self.page_size,
                "groupFields": GROUP_FIELDS,
            }
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.contactGroups().list(**p).execute()

            response = self._execute(
                execute_list, f"list_contact_groups(page {page_num})"
            )

            for group_data in response.get("contactGroups", []):
                groups.append(ContactGroup.from_api_response(group_data))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

            self._pause()

        logger.info(f"Listed {len(groups)} contact groups")
        return groups

    # ========== Delete ==========

    def batch_delete_contacts(
        self,
        resource_names: list[str],
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """
        Delete contacts in batches.

        Uses batchDeleteContacts. Batches already deleted stay deleted when a
        later batch fails.

        Args:
            resource_names: Resource names to delete
            progress_callback: Called with (deleted so far, total) after each batch

        Returns:
            Number of contacts deleted

        Raises:
            PeopleAPIError: If a batch fails
        """
        if not resource_names:
            return 0

        total = len(resource_names)
        logger.debug(f"Batch deleting {total} contacts")
        deleted_count = 0

        for i in range(0, total, self.delete_batch_size):
            batch = resource_names[i : i + self.delete_batch_size]
            batch_num = i // self.delete_batch_size + 1
            logger.debug(f"Processing delete batch {batch_num} ({len(batch)} contacts)")

            batch_body: dict[str, list[str]] = {"resourceNames": batch}

            def execute_batch_delete(
                b: dict[str, list[str]] = batch_body,
            ) -> Any:
                return self.service.people().batchDeleteContacts(body=b).execute()

            self._execute(
                execute_batch_delete,
                f"batch_delete_contacts(batch {batch_num})",
            )

            deleted_count += len(batch)
            _report(progress_callback, deleted_count, total)
            self._pause()

        logger.info(f"Batch deleted {deleted_count} contacts")
        return deleted_count

    def delete_all_contacts(
        self, progress_callback: ProgressCallback | None = None
    ) -> int:
        """
        Delete every contact of the authenticated user.

        Fetches the current contact list first, then deletes it in batches.

        Args:
            progress_callback: Called with (deleted so far, total) after each batch

        Returns:
            Number of contacts deleted

        Raises:
            PeopleAPIError: If listing or any batch fails
        """
        contacts = self.list_contacts()
        resource_names = [c.resource_name for c in contacts if c.resource_name]
        return self.batch_delete_contacts(resource_names, progress_callback)

    def delete_contact_group(
        self, resource_name: str, delete_contacts: bool = False
    ) -> None:
        """
        Delete a contact group.

        Args:
            resource_name: Group's resource name (e.g., "contactGroups/abc123")
            delete_contacts: If True, also delete the contacts in the group.
                           If False (default), contacts are preserved but
                           removed from the group.

        Raises:
            PeopleAPIError: If deletion fails
        """
        logger.debug(f"Deleting contact group: {resource_name}")

        def execute_delete() -> Any:
            return (
                self.service.contactGroups()
                .delete(
                    resourceName=resource_name,
                    deleteContacts=delete_contacts,
                )
                .execute()
            )

        self._execute(execute_delete, f"delete_contact_group({resource_name})")
        logger.debug(f"Deleted contact group: {resource_name}")

    def delete_user_contact_groups(
        self, progress_callback: ProgressCallback | None = None
    ) -> int:
        """
        Delete every user-created contact group, best effort.

        Groups are deleted one at a time with deleteContacts=False. A failure
        on one group is logged as a warning and the next group is tried.

        Args:
            progress_callback: Called with (deleted so far, total user groups)
                after each attempt

        Returns:
            Number of groups actually deleted

        Raises:
            PeopleAPIError: If the groups cannot be listed
        """
        groups = self.list_contact_groups()
        user_groups = [g for g in groups if g.is_user_group()]
        if not user_groups:
            return 0

        total = len(user_groups)
        deleted = 0

        for group in user_groups:
            try:
                self.delete_contact_group(group.resource_name, delete_contacts=False)
                deleted += 1
            except PeopleAPIError as e:
                logger.warning(f"Failed to delete group {group.name}: {e}")

            _report(progress_callback, deleted, total)
            self._pause()

        logger.info(f"Deleted {deleted} of {total} user contact groups")
        return deleted

    # ========== Create ==========

    def create_contact_group(self, name: str) -> ContactGroup:
        """
        Create a new contact group.

        Args:
            name: Name for the new contact group

        Returns:
            Created ContactGroup with its new resource name

        Raises:
            PeopleAPIError: If creation fails (e.g., 409 if name already exists)
        """
        logger.debug(f"Creating contact group: {name}")

        body = {"contactGroup": {"name": name}}

        def execute_create() -> Any:
            return self.service.contactGroups().create(body=body).execute()

        response = self._execute(execute_create, f"create_contact_group({name})")
        created = ContactGroup.from_api_response(response)
        logger.debug(f"Created contact group: {created.resource_name} ({name})")
        return created

    def create_contact_groups(
        self,
        groups: list[ContactGroup],
        progress_callback: ProgressCallback | None = None,
    ) -> dict[str, str]:
        """
        Recreate user contact groups, all or nothing.

        Groups are created in input order; system groups are skipped. The
        first failure aborts the operation.

        Args:
            groups: Groups from a backup
            progress_callback: Called with (created so far, total user groups)
                after each creation

        Returns:
            Mapping of old group resource name -> new resource name

        Raises:
            PeopleAPIError: If any creation fails
        """
        user_groups = [g for g in groups if g.is_user_group()]
        total = len(user_groups)
        remap: dict[str, str] = {}

        for group in user_groups:
            created = self.create_contact_group(group.name)
            remap[group.resource_name] = created.resource_name
            _report(progress_callback, len(remap), total)
            self._pause()

        logger.info(f"Created {len(remap)} contact groups")
        return remap

    def create_contacts(
        self,
        contacts: list[Contact],
        group_remap: dict[str, str],
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """
        Recreate contacts from a backup in batches.

        Each contact is sanitized and its group memberships rewritten through
        group_remap before it is sent. The first failing batch aborts the
        operation; earlier batches are not undone.

        Args:
            contacts: Contacts from a backup
            group_remap: Old group resource name -> new resource name
            progress_callback: Called with (created so far, total) after each batch

        Returns:
            Number of contacts created

        Raises:
            PeopleAPIError: If a batch fails
        """
        if not contacts:
            return 0

        total = len(contacts)
        logger.debug(f"Batch creating {total} contacts")
        created_count = 0

        for i in range(0, total, self.create_batch_size):
            batch = contacts[i : i + self.create_batch_size]
            batch_num = i // self.create_batch_size + 1
            logger.debug(f"Processing create batch {batch_num} ({len(batch)} contacts)")

            batch_body = {
                "contacts": [
                    {"contactPerson": sanitize_contact(c, group_remap).to_api_format()}
                    for c in batch
                ],
                "readMask": CREATE_READ_MASK,
                "sources": CREATE_SOURCES,
            }

            def execute_batch_create(
                b: dict[str, Any] = batch_body,
            ) -> Any:
                return self.service.people().batchCreateContacts(body=b).execute()

            self._execute(
                execute_batch_create,
                f"batch_create_contacts(batch {batch_num})",
            )

            created_count += len(batch)
            _report(progress_callback, created_count, total)
            self._pause()

        logger.info(f"Batch created {created_count} contacts")
        return created_count
