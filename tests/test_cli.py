"""
Tests for the CLI module.

Tests the command-line interface using Click's testing utilities.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from gcontacts_backup import __version__
from gcontacts_backup.api.people_api import PeopleAPIError
from gcontacts_backup.auth.google_auth import AuthenticationError, ClientSecretsError
from gcontacts_backup.backup.archive import Archive, BackupFormatError
from gcontacts_backup.cli import (
    DEFAULT_CONFIG_DIR,
    ProgressDisplay,
    cli,
    get_config_file,
)
from gcontacts_backup.sync.engine import CaptureResult, RestoreResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path):
    return tmp_path / "config"


@pytest.fixture
def backup_file(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text("{}")
    return path


def make_archive():
    return Archive(created_at=datetime(2024, 1, 20, 10, 30, tzinfo=timezone.utc))


class TestHelperFunctions:
    """Tests for CLI helper functions."""

    def test_default_config_dir_is_in_home(self):
        """Test that DEFAULT_CONFIG_DIR is in user's home directory."""
        assert Path.home() / ".gcontacts-backup" == DEFAULT_CONFIG_DIR

    def test_get_config_file_default(self, tmp_path):
        assert get_config_file(tmp_path, None) == tmp_path / "config.yaml"

    def test_get_config_file_custom(self, tmp_path):
        custom = str(tmp_path / "custom.yaml")
        assert get_config_file(tmp_path, custom) == Path(custom)


class TestCliGroup:
    """Tests for the main CLI group."""

    def test_cli_help(self, runner):
        """Test that CLI shows help."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Google Contacts backup and restore" in result.output
        for command in ("auth", "backup", "restore", "status", "init-config"):
            assert command in result.output

    def test_cli_version(self, runner):
        """Test that CLI shows version."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "gcontacts-backup" in result.output
        assert __version__ in result.output

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_verbose_flag(self, mock_setup_logging, mock_auth_class, runner, config_dir):
        """Test that --verbose is passed to logging setup."""
        mock_auth_class.return_value.get_auth_status.return_value = {
            "config_dir": str(config_dir),
            "credentials_path": "creds.json",
            "credentials_exist": False,
            "token_path": "token.json",
            "token_exists": False,
            "authenticated": False,
        }
        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "--verbose", "status"]
        )
        assert result.exit_code == 0
        assert mock_setup_logging.call_args.kwargs["verbose"] is True
        assert mock_setup_logging.call_args.kwargs["log_dir"] == config_dir / "logs"

    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_invalid_config_file_warns(self, mock_setup_logging, runner, config_dir):
        """Test that a broken config file does not stop the CLI."""
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("api_page_size: 5000\n")

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "init-config"])

        assert "Warning: Configuration error" in result.output

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_custom_config_file_is_applied(
        self, mock_setup_logging, mock_auth_class, runner, config_dir, tmp_path
    ):
        """Test that values from --config-file reach the logging setup."""
        mock_auth_class.return_value.get_auth_status.return_value = {
            "config_dir": str(config_dir),
            "credentials_path": "creds.json",
            "credentials_exist": False,
            "token_path": "token.json",
            "token_exists": False,
            "authenticated": False,
        }
        custom = tmp_path / "elsewhere" / "custom.yaml"
        custom.parent.mkdir()
        log_dir = tmp_path / "custom-logs"
        custom.write_text(f"verbose: true\nlog_dir: {log_dir}\nlog_retention_count: 0\n")

        result = runner.invoke(
            cli,
            ["--config-dir", str(config_dir), "--config-file", str(custom), "status"],
        )

        assert result.exit_code == 0
        assert "Warning" not in result.output
        assert mock_setup_logging.call_args.kwargs["verbose"] is True
        assert mock_setup_logging.call_args.kwargs["log_dir"] == log_dir

    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_config_dir_from_environment(self, mock_setup_logging, runner, config_dir):
        with patch.dict(os.environ, {"GCONTACTS_BACKUP_CONFIG_DIR": str(config_dir)}):
            result = runner.invoke(cli, ["init-config"])
        assert result.exit_code == 0
        assert (config_dir / "config.yaml").exists()


class TestAuthCommand:
    """Tests for the auth command."""

    def test_auth_help(self, runner):
        result = runner.invoke(cli, ["auth", "--help"])
        assert result.exit_code == 0
        assert "Authenticate with Google" in result.output

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_auth_already_authenticated(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        """Test auth when already authenticated without --force."""
        mock_auth = mock_auth_class.return_value
        mock_auth.is_authenticated.return_value = True

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "auth"])

        assert result.exit_code == 0
        assert "Already authenticated" in result.output
        mock_auth.authenticate.assert_not_called()

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_auth_force_reauth(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        """Test auth with --force clears the cached token first."""
        mock_auth = mock_auth_class.return_value

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "auth", "--force"])

        assert result.exit_code == 0
        assert "Successfully authenticated" in result.output
        mock_auth.clear_credentials.assert_called_once()
        mock_auth.authenticate.assert_called_once_with(force_reauth=True)
        mock_auth.is_authenticated.assert_not_called()

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_auth_new_authentication(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        mock_auth = mock_auth_class.return_value
        mock_auth.is_authenticated.return_value = False

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "auth"])

        assert result.exit_code == 0
        mock_auth.authenticate.assert_called_once_with(force_reauth=False)

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_auth_credentials_not_found(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        mock_auth = mock_auth_class.return_value
        mock_auth.is_authenticated.return_value = False
        mock_auth.authenticate.side_effect = ClientSecretsError("not found")

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "auth"])

        assert result.exit_code == 1
        assert "Error: not found" in result.output
        assert "console.cloud.google.com" in result.output

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_auth_authentication_error(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        mock_auth = mock_auth_class.return_value
        mock_auth.is_authenticated.return_value = False
        mock_auth.authenticate.side_effect = AuthenticationError("timed out")

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "auth"])

        assert result.exit_code == 1
        assert "Authentication failed: timed out" in result.output

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_credentials_option(
        self, mock_setup_logging, mock_auth_class, runner, config_dir, tmp_path
    ):
        secrets = tmp_path / "client.json"
        mock_auth_class.return_value.is_authenticated.return_value = True

        runner.invoke(
            cli, ["--config-dir", str(config_dir), "--credentials", str(secrets), "auth"]
        )

        assert mock_auth_class.call_args.kwargs["credentials_path"] == secrets


class TestBackupCommand:
    """Tests for the backup command."""

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_backup_json(self, mock_setup_logging, mock_engine_class, runner, config_dir):
        mock_engine = mock_engine_class.return_value
        mock_engine.capture.return_value = CaptureResult(
            path=Path("out.json"), format="json", contact_count=12, group_count=4
        )

        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "backup", "-o", "out.json"]
        )

        assert result.exit_code == 0
        assert "Backed up 12 contacts and 4 groups to out.json" in result.output
        kwargs = mock_engine.capture.call_args.kwargs
        assert kwargs["fmt"] is None
        assert kwargs["output_path"] == Path("out.json")
        assert isinstance(kwargs["on_progress"], ProgressDisplay)

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_backup_csv_note(self, mock_setup_logging, mock_engine_class, runner, config_dir):
        mock_engine_class.return_value.capture.return_value = CaptureResult(
            path=Path("out.csv"), format="csv"
        )

        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "backup", "--format", "CSV"]
        )

        assert result.exit_code == 0
        assert "cannot be restored" in result.output
        assert mock_engine_class.return_value.capture.call_args.kwargs["fmt"] == "csv"

    def test_backup_rejects_unknown_format(self, runner, config_dir):
        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "backup", "--format", "xml"]
        )
        assert result.exit_code == 2

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_backup_api_error(self, mock_setup_logging, mock_engine_class, runner, config_dir):
        mock_engine_class.return_value.capture.side_effect = PeopleAPIError(
            "list_contacts(page 1) failed: quota"
        )

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "backup"])

        assert result.exit_code == 1
        assert "Backup failed: list_contacts(page 1) failed: quota" in result.output


class TestRestoreCommand:
    """Tests for the restore command."""

    def fake_restore(self, mock_engine, **result_fields):
        def restore(path, confirm, on_progress):
            archive = make_archive()
            if not confirm(archive):
                return RestoreResult(archive=archive, cancelled=True)
            return RestoreResult(archive=archive, **result_fields)

        mock_engine.restore.side_effect = restore

    def test_restore_requires_input(self, runner, config_dir):
        result = runner.invoke(cli, ["--config-dir", str(config_dir), "restore"])
        assert result.exit_code == 2

    def test_restore_input_must_exist(self, runner, config_dir, tmp_path):
        result = runner.invoke(
            cli,
            ["--config-dir", str(config_dir), "restore", "-i", str(tmp_path / "no.json")],
        )
        assert result.exit_code == 2

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_restore_confirmed(
        self, mock_setup_logging, mock_engine_class, runner, config_dir, backup_file
    ):
        self.fake_restore(
            mock_engine_class.return_value,
            contacts_deleted=10,
            groups_deleted=3,
            groups_created=2,
            contacts_created=50,
        )

        result = runner.invoke(
            cli,
            ["--config-dir", str(config_dir), "restore", "-i", str(backup_file)],
            input="y\n",
        )

        assert result.exit_code == 0
        assert "This will DELETE all existing contacts" in result.output
        assert "Restored 50 contacts and 2 groups" in result.output
        assert "deleted 10 contacts, 3 groups" in result.output

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_restore_declined(
        self, mock_setup_logging, mock_engine_class, runner, config_dir, backup_file
    ):
        self.fake_restore(mock_engine_class.return_value)

        result = runner.invoke(
            cli,
            ["--config-dir", str(config_dir), "restore", "-i", str(backup_file)],
            input="n\n",
        )

        assert result.exit_code == 0
        assert "Restore cancelled." in result.output
        assert "Restored" not in result.output

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_restore_yes_skips_prompt(
        self, mock_setup_logging, mock_engine_class, runner, config_dir, backup_file
    ):
        self.fake_restore(mock_engine_class.return_value, contacts_created=1)

        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "restore", "-i", str(backup_file), "-y"]
        )

        assert result.exit_code == 0
        assert "Continue?" not in result.output
        assert "Contacts: 0" in result.output

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_restore_invalid_backup(
        self, mock_setup_logging, mock_engine_class, runner, config_dir, backup_file
    ):
        mock_engine_class.return_value.restore.side_effect = BackupFormatError(
            "Invalid backup file: missing version"
        )

        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "restore", "-i", str(backup_file)]
        )

        assert result.exit_code == 1
        assert "missing version" in result.output

    @patch("gcontacts_backup.cli.main.BackupEngine")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_restore_api_error(
        self, mock_setup_logging, mock_engine_class, runner, config_dir, backup_file
    ):
        mock_engine_class.return_value.restore.side_effect = PeopleAPIError(
            "batch_create_contacts(batch 2) failed"
        )

        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "restore", "-i", str(backup_file), "-y"]
        )

        assert result.exit_code == 1
        assert "Restore failed: batch_create_contacts(batch 2) failed" in result.output
        assert "not undone" in result.output


class TestStatusCommand:
    """Tests for the status command."""

    def status(self, **overrides):
        status = {
            "config_dir": "/cfg",
            "credentials_path": "/cfg/credentials.json",
            "credentials_exist": True,
            "token_path": "/cfg/token.json",
            "token_exists": True,
            "authenticated": True,
        }
        status.update(overrides)
        return status

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_status_authenticated(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        mock_auth_class.return_value.get_auth_status.return_value = self.status()

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "status"])

        assert result.exit_code == 0
        assert "Authenticated" in result.output
        assert "Ready!" in result.output

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_status_token_expired(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        mock_auth_class.return_value.get_auth_status.return_value = self.status(
            authenticated=False
        )

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "status"])

        assert "Token expired or invalid" in result.output
        assert "gcontacts-backup auth" in result.output

    @patch("gcontacts_backup.cli.main.GoogleAuth")
    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_status_no_credentials(
        self, mock_setup_logging, mock_auth_class, runner, config_dir
    ):
        mock_auth_class.return_value.get_auth_status.return_value = self.status(
            credentials_exist=False, token_exists=False, authenticated=False
        )

        result = runner.invoke(cli, ["--config-dir", str(config_dir), "status"])

        assert "Not found" in result.output
        assert "Setup required" in result.output


class TestInitConfigCommand:
    """Tests for the init-config command."""

    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_creates_file(self, mock_setup_logging, runner, config_dir):
        result = runner.invoke(cli, ["--config-dir", str(config_dir), "init-config"])

        assert result.exit_code == 0
        assert "Configuration file created successfully" in result.output
        assert (config_dir / "config.yaml").exists()

    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_refuses_to_overwrite(self, mock_setup_logging, runner, config_dir):
        runner.invoke(cli, ["--config-dir", str(config_dir), "init-config"])
        result = runner.invoke(cli, ["--config-dir", str(config_dir), "init-config"])

        assert result.exit_code == 1
        assert "already exists" in result.output

    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_force_overwrites(self, mock_setup_logging, runner, config_dir):
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("verbose: true\n")

        result = runner.invoke(
            cli, ["--config-dir", str(config_dir), "init-config", "--force"]
        )

        assert result.exit_code == 0
        assert "# verbose: true" in (config_dir / "config.yaml").read_text()

    @patch("gcontacts_backup.cli.main.setup_logging")
    def test_custom_config_file(self, mock_setup_logging, runner, config_dir, tmp_path):
        custom = tmp_path / "elsewhere.yaml"

        result = runner.invoke(
            cli,
            ["--config-dir", str(config_dir), "--config-file", str(custom), "init-config"],
        )

        assert result.exit_code == 0
        assert custom.exists()


class TestProgressDisplay:
    """Tests for the step progress renderer."""

    def test_new_bar_per_step(self):
        with ProgressDisplay() as progress:
            progress("fetch_contacts", 1, 3)
            assert progress._step == "fetch_contacts"
            progress("fetch_contacts", 3, 3)
            assert progress._position == 3

            progress("create_contacts", 1, 0)
            assert progress._step == "create_contacts"
            assert progress._position == 1

        assert progress._step is None
