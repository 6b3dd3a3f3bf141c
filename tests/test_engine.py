"""
Unit tests for the backup and restore engine.

The People API client and the authentication manager are replaced with
mocks so the tests exercise sequencing, cancellation and error handling.
"""

import json
from unittest.mock import MagicMock

import pytest

from gcontacts_backup.api.people_api import PeopleAPIError
from gcontacts_backup.auth.google_auth import AuthenticationError
from gcontacts_backup.backup.archive import Archive, BackupFormatError
from gcontacts_backup.config.settings import AppConfig
from gcontacts_backup.sync.contact import Contact
from gcontacts_backup.sync.engine import (
    STEP_CREATE_CONTACTS,
    STEP_CREATE_GROUPS,
    STEP_DELETE_CONTACTS,
    STEP_DELETE_GROUPS,
    STEP_FETCH_CONTACTS,
    BackupEngine,
)
from gcontacts_backup.sync.group import ContactGroup


def make_contact(n):
    return Contact.from_api_response(
        {
            "resourceName": f"people/c{n}",
            "etag": f"e{n}",
            "names": [{"givenName": f"Person {n}"}],
        }
    )


def make_group(resource_name, name, group_type="USER_CONTACT_GROUP"):
    return ContactGroup.from_api_response(
        {"resourceName": resource_name, "name": name, "groupType": group_type}
    )


@pytest.fixture
def config(tmp_path):
    return AppConfig.from_sources(config_dir=tmp_path)


@pytest.fixture
def api():
    api = MagicMock()
    api.list_contact_groups.return_value = [
        make_group("contactGroups/myContacts", "myContacts", "SYSTEM_CONTACT_GROUP"),
        make_group("contactGroups/g1", "Friends"),
    ]

    def list_contacts(progress_callback=None):
        contacts = [make_contact(1), make_contact(2)]
        if progress_callback:
            progress_callback(2, 2)
        return contacts

    api.list_contacts.side_effect = list_contacts
    api.delete_all_contacts.return_value = 10
    api.delete_user_contact_groups.return_value = 3
    api.create_contact_groups.return_value = {"contactGroups/g1": "contactGroups/n1"}
    api.create_contacts.return_value = 2
    return api


@pytest.fixture
def auth():
    auth = MagicMock()
    auth.authenticate.return_value = MagicMock(name="credentials")
    return auth


@pytest.fixture
def engine(config, auth, api):
    return BackupEngine(config, auth=auth, api_factory=lambda creds: api)


@pytest.fixture
def backup_file(tmp_path):
    archive = Archive(
        contacts=[make_contact(1), make_contact(2)],
        groups=[
            make_group("contactGroups/myContacts", "myContacts", "SYSTEM_CONTACT_GROUP"),
            make_group("contactGroups/g1", "Friends"),
        ],
    )
    path = tmp_path / "backup.json"
    path.write_text(json.dumps(archive.to_dict()))
    return path


MUTATIONS = [
    "delete_all_contacts",
    "delete_user_contact_groups",
    "create_contact_groups",
    "create_contacts",
]


def called_methods(api):
    return [c[0] for c in api.method_calls]


class TestBackupEngineInitialization:
    """Tests for default collaborators."""

    def test_default_auth_uses_config(self, config):
        engine = BackupEngine(config)
        assert engine.auth.credentials_path == config.credentials_file
        assert engine.auth.token_store.path == config.token_file
        assert engine.auth.auth_timeout == config.auth_timeout

    def test_default_api_uses_config(self, tmp_path):
        config = AppConfig.from_sources(
            config_dir=tmp_path,
            file_config={"api_page_size": 50, "api_delete_batch_size": 25},
        )
        api = BackupEngine(config)._default_api(MagicMock())
        assert api.page_size == 50
        assert api.delete_batch_size == 25


class TestCapture:
    """Tests for the backup operation."""

    def test_json_capture(self, engine, tmp_path):
        progress = []
        path = tmp_path / "out.json"

        result = engine.capture(
            fmt="json", output_path=path, on_progress=lambda *a: progress.append(a)
        )

        assert result.path == path
        assert result.format == "json"
        assert result.contact_count == 2
        assert result.group_count == 2
        data = json.loads(path.read_text())
        assert data["contact_count"] == 2
        assert [g["name"] for g in data["groups"]] == ["myContacts", "Friends"]
        assert progress == [(STEP_FETCH_CONTACTS, 2, 2)]

    def test_csv_capture(self, engine, tmp_path):
        path = tmp_path / "out.csv"
        result = engine.capture(fmt="csv", output_path=path)
        assert result.format == "csv"
        assert path.read_text().startswith("Name Prefix,First Name")

    def test_default_format_from_config(self, tmp_path, auth, api):
        config = AppConfig.from_sources(
            config_dir=tmp_path, file_config={"default_format": "csv"}
        )
        engine = BackupEngine(config, auth=auth, api_factory=lambda creds: api)
        result = engine.capture(output_path=tmp_path / "out.csv")
        assert result.format == "csv"

    def test_default_output_path(self, engine, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = engine.capture(fmt="json")
        assert result.path.name.startswith("contacts-")
        assert result.path.suffix == ".json"
        assert (tmp_path / result.path).exists()

    def test_unsupported_format(self, engine, auth, tmp_path):
        with pytest.raises(ValueError, match="Unsupported backup format"):
            engine.capture(fmt="xml", output_path=tmp_path / "out.xml")
        auth.authenticate.assert_not_called()

    def test_fetch_failure_writes_nothing(self, engine, api, tmp_path):
        api.list_contacts.side_effect = PeopleAPIError("list_contacts(page 2) failed")
        path = tmp_path / "out.json"

        with pytest.raises(PeopleAPIError):
            engine.capture(fmt="json", output_path=path)

        assert not path.exists()

    def test_auth_failure(self, engine, auth, api, tmp_path):
        auth.authenticate.side_effect = AuthenticationError("denied")
        with pytest.raises(AuthenticationError):
            engine.capture(fmt="json", output_path=tmp_path / "out.json")
        assert api.method_calls == []


class TestRestore:
    """Tests for the restore operation."""

    def test_steps_run_in_order(self, engine, api, backup_file):
        result = engine.restore(backup_file, confirm=lambda archive: True)

        assert called_methods(api) == MUTATIONS
        assert not result.cancelled
        assert result.contacts_deleted == 10
        assert result.groups_deleted == 3
        assert result.groups_created == 1
        assert result.contacts_created == 2

    def test_archive_passed_to_create_steps(self, engine, api, backup_file):
        engine.restore(backup_file)

        groups = api.create_contact_groups.call_args.args[0]
        assert [g.name for g in groups] == ["myContacts", "Friends"]
        contacts, remap = api.create_contacts.call_args.args
        assert [c.resource_name for c in contacts] == ["people/c1", "people/c2"]
        assert remap == {"contactGroups/g1": "contactGroups/n1"}

    def test_confirm_sees_archive_after_auth(self, engine, auth, backup_file):
        seen = []

        def confirm(archive):
            auth.authenticate.assert_called_once()
            seen.append(archive)
            return True

        engine.restore(backup_file, confirm=confirm)

        assert seen[0].contact_count == 2

    def test_declined_confirmation_changes_nothing(self, engine, api, backup_file):
        result = engine.restore(backup_file, confirm=lambda archive: False)

        assert result.cancelled
        assert result.archive.contact_count == 2
        assert api.method_calls == []

    def test_progress_steps(self, engine, api, backup_file):
        def fake_step(*args, progress_callback=None, **kwargs):
            progress_callback(1, 1)
            return MagicMock()

        for name in MUTATIONS:
            getattr(api, name).side_effect = fake_step
        api.create_contact_groups.side_effect = lambda groups, progress_callback: (
            progress_callback(1, 1) or {}
        )

        progress = []
        engine.restore(backup_file, on_progress=lambda *a: progress.append(a[0]))

        assert progress == [
            STEP_DELETE_CONTACTS,
            STEP_DELETE_GROUPS,
            STEP_CREATE_GROUPS,
            STEP_CREATE_CONTACTS,
        ]

    def test_delete_failure_aborts(self, engine, api, backup_file):
        api.delete_all_contacts.side_effect = PeopleAPIError("batch 2 failed")

        with pytest.raises(PeopleAPIError):
            engine.restore(backup_file)

        assert called_methods(api) == ["delete_all_contacts"]

    def test_group_creation_failure_aborts(self, engine, api, backup_file):
        api.create_contact_groups.side_effect = PeopleAPIError("create failed")

        with pytest.raises(PeopleAPIError):
            engine.restore(backup_file)

        api.create_contacts.assert_not_called()

    def test_invalid_archive_stops_before_auth(self, engine, auth, api, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"contacts": []}))

        with pytest.raises(BackupFormatError):
            engine.restore(path)

        auth.authenticate.assert_not_called()
        assert api.method_calls == []

    @pytest.mark.parametrize(
        "field,value",
        [
            ("memberships", ["contactGroups/x"]),
            ("emailAddresses", {"value": "a@b.c"}),
        ],
    )
    def test_malformed_record_stops_before_delete(
        self, engine, auth, api, backup_file, field, value
    ):
        data = json.loads(backup_file.read_text())
        data["contacts"][0][field] = value
        backup_file.write_text(json.dumps(data))

        with pytest.raises(BackupFormatError):
            engine.restore(backup_file, confirm=lambda archive: True)

        auth.authenticate.assert_not_called()
        api.delete_all_contacts.assert_not_called()

    def test_empty_archive_still_restores(self, engine, api, tmp_path, caplog):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps(Archive().to_dict()))

        engine.restore(path)

        assert "contains no contacts" in caplog.text
        assert called_methods(api) == MUTATIONS
