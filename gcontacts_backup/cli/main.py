"""
Command-line interface for gcontacts_backup.

Provides CLI commands for authentication, backup, restore and status
checking of a Google Contacts account.

Usage:
    # Show help
    gcontacts-backup --help

    # Authenticate
    gcontacts-backup auth

    # Back up to JSON (restorable) or CSV (export only)
    gcontacts-backup backup
    gcontacts-backup backup --format csv --output contacts.csv

    # Replace all contacts with a backup
    gcontacts-backup restore --input contacts.json
"""

import sys
from pathlib import Path

import click

from gcontacts_backup import __version__
from gcontacts_backup.api.people_api import PeopleAPIError
from gcontacts_backup.auth.google_auth import (
    AuthenticationError,
    ClientSecretsError,
    GoogleAuth,
)
from gcontacts_backup.auth.token_store import TokenStore
from gcontacts_backup.backup.archive import Archive, BackupError
from gcontacts_backup.backup.manager import SUPPORTED_FORMATS
from gcontacts_backup.cli.progress import ProgressDisplay
from gcontacts_backup.config.generator import save_config_file
from gcontacts_backup.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from gcontacts_backup.config.settings import AppConfig
from gcontacts_backup.sync.engine import BackupEngine
from gcontacts_backup.utils import resolve_config_dir
from gcontacts_backup.utils.logging import cleanup_old_logs, get_logger, setup_logging


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def build_auth(app_config: AppConfig) -> GoogleAuth:
    """Create the authentication manager for this invocation."""

    def show_url(url: str) -> None:
        click.echo("Opening browser for authorization...")
        click.echo(f"If it does not open, visit this URL:\n\n{url}\n")

    return GoogleAuth(
        config_dir=app_config.config_dir,
        credentials_path=app_config.credentials_file,
        token_store=TokenStore(app_config.token_file),
        auth_timeout=app_config.auth_timeout,
        on_authorization_url=show_url,
    )


def show_credentials_help(credentials_path: Path) -> None:
    click.echo("\nTo get started:", err=True)
    click.echo("1. Go to https://console.cloud.google.com/", err=True)
    click.echo("2. Create a project and enable the People API", err=True)
    click.echo("3. Create OAuth 2.0 credentials (Desktop application)", err=True)
    click.echo(f"4. Download and save as: {credentials_path}", err=True)


def show_archive_summary(archive: Archive) -> None:
    click.echo(f"Backup version: {archive.version}")
    click.echo(f"Backup created: {archive.created_at.isoformat()}")
    click.echo(f"Contacts: {archive.contact_count}")
    click.echo(f"Groups: {archive.group_count} ({len(archive.user_groups())} user)")


@click.group()
@click.version_option(version=__version__, prog_name="gcontacts-backup")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="GCONTACTS_BACKUP_CONFIG_DIR",
    help="Configuration directory path (default: ~/.gcontacts-backup).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="GCONTACTS_BACKUP_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.option(
    "--credentials",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="OAuth client credentials file (default: <config-dir>/credentials.json).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
    credentials: str | None,
) -> None:
    """
    Google Contacts backup and restore.

    Backs up every contact and label of a Google account to JSON or CSV,
    and restores a JSON backup by replacing the account's contacts.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = resolve_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)
    ctx.obj["config_file"] = resolved_config_file

    # Load configuration file
    config = {}
    try:
        loader = ConfigLoader(
            config_dir=resolved_config_file.parent,
            config_file=resolved_config_file.name,
        )
        config = loader.load_and_validate()
    except ConfigError as e:
        # Show error but don't fail - allow CLI to work without config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    app_config = AppConfig.from_sources(
        config_dir=resolved_config_dir,
        file_config=config,
        credentials_file=credentials,
        verbose=verbose,
    )
    ctx.obj["app_config"] = app_config

    log_dir = app_config.log_dir or resolved_config_dir / "logs"
    setup_logging(verbose=app_config.verbose, log_dir=log_dir, enable_file_logging=True)

    if app_config.log_retention_count > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=app_config.log_retention_count)


# =============================================================================
# Auth Command
# =============================================================================


@cli.command("auth")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Discard the cached token and re-authenticate.",
)
@click.pass_context
def auth_command(ctx: click.Context, force: bool) -> None:
    """
    Authenticate with Google.

    Opens a browser window to complete the OAuth flow and caches the
    token for future runs.

    Examples:

        gcontacts-backup auth

        # Force re-authentication
        gcontacts-backup auth --force
    """
    logger = get_logger(__name__)
    app_config: AppConfig = ctx.obj["app_config"]
    auth = build_auth(app_config)

    try:
        if not force and auth.is_authenticated():
            click.echo(click.style("Already authenticated.", fg="green"))
            click.echo("Use --force to re-authenticate.")
            return

        if force:
            auth.clear_credentials()

        auth.authenticate(force_reauth=force)
        click.echo(click.style("Successfully authenticated!", fg="green"))
        click.echo(f"Token saved to {auth.token_store.path}")
        logger.info("Authentication completed")

    except ClientSecretsError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        show_credentials_help(app_config.credentials_file)
        sys.exit(1)

    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        click.echo(click.style(f"Authentication failed: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Backup Command
# =============================================================================


@cli.command("backup")
@click.option(
    "--format",
    "-F",
    "fmt",
    type=click.Choice(SUPPORTED_FORMATS, case_sensitive=False),
    help="Output format: json (restorable) or csv (export only).",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="Output file (default: contacts-YYYYMMDD-HHMMSS.<format>).",
)
@click.pass_context
def backup_command(ctx: click.Context, fmt: str | None, output: str | None) -> None:
    """
    Back up all contacts and labels.

    JSON backups keep every field and can be restored. CSV exports follow
    the Google Contacts CSV layout and cannot be restored from.

    Examples:

        gcontacts-backup backup

        gcontacts-backup backup --format csv --output contacts.csv
    """
    logger = get_logger(__name__)
    app_config: AppConfig = ctx.obj["app_config"]
    engine = BackupEngine(app_config, auth=build_auth(app_config))

    try:
        with ProgressDisplay() as progress:
            result = engine.capture(
                fmt=fmt.lower() if fmt else None,
                output_path=Path(output) if output else None,
                on_progress=progress,
            )

        click.echo(
            click.style(
                f"Backed up {result.contact_count} contacts and "
                f"{result.group_count} groups to {result.path}",
                fg="green",
            )
        )
        if result.format == "csv":
            click.echo("Note: CSV backups cannot be restored. Use --format json.")

    except ClientSecretsError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        show_credentials_help(app_config.credentials_file)
        sys.exit(1)

    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        click.echo(click.style(f"Authentication failed: {e}", fg="red"), err=True)
        sys.exit(1)

    except PeopleAPIError as e:
        logger.error(f"Backup failed: {e}")
        click.echo(click.style(f"Backup failed: {e}", fg="red"), err=True)
        sys.exit(1)

    except BackupError as e:
        logger.error(f"Failed to write backup: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Restore Command
# =============================================================================


@cli.command("restore")
@click.option(
    "--input",
    "-i",
    "input_file",
    required=True,
    type=click.Path(exists=True, file_okay=True, dir_okay=False),
    help="JSON backup file to restore from.",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def restore_command(ctx: click.Context, input_file: str, yes: bool) -> None:
    """
    Restore contacts from a JSON backup.

    WARNING: this deletes every contact and every label in the account
    before recreating them from the backup. Deleted data is not recovered
    if the restore fails part way.

    Examples:

        gcontacts-backup restore --input contacts.json

        # Without confirmation
        gcontacts-backup restore --input contacts.json --yes
    """
    logger = get_logger(__name__)
    app_config: AppConfig = ctx.obj["app_config"]
    engine = BackupEngine(app_config, auth=build_auth(app_config))

    def confirm(archive: Archive) -> bool:
        show_archive_summary(archive)
        click.echo()
        if yes:
            return True
        click.echo(
            click.style(
                "This will DELETE all existing contacts and labels and replace "
                "them with the backup.",
                fg="yellow",
            )
        )
        return click.confirm("Continue?", default=False)

    try:
        click.echo(f"Loading backup from {input_file}...")
        with ProgressDisplay() as progress:
            result = engine.restore(
                Path(input_file), confirm=confirm, on_progress=progress
            )

        if result.cancelled:
            click.echo("Restore cancelled.")
            return

        click.echo(
            click.style(
                f"Restored {result.contacts_created} contacts and "
                f"{result.groups_created} groups "
                f"(deleted {result.contacts_deleted} contacts, "
                f"{result.groups_deleted} groups).",
                fg="green",
            )
        )

    except BackupError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    except ClientSecretsError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        show_credentials_help(app_config.credentials_file)
        sys.exit(1)

    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        click.echo(click.style(f"Authentication failed: {e}", fg="red"), err=True)
        sys.exit(1)

    except PeopleAPIError as e:
        logger.error(f"Restore failed: {e}")
        click.echo(click.style(f"Restore failed: {e}", fg="red"), err=True)
        click.echo(
            "Changes made before the failure were not undone.", err=True
        )
        sys.exit(1)


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show authentication status.

    Example:

        gcontacts-backup status
    """
    app_config: AppConfig = ctx.obj["app_config"]
    auth = build_auth(app_config)
    auth_status = auth.get_auth_status()

    click.echo("=== Google Contacts Backup Status ===\n")
    click.echo(f"Configuration directory: {auth_status['config_dir']}")

    creds_status = (
        "Found" if auth_status["credentials_exist"] else click.style("Not found", fg="red")
    )
    click.echo(f"OAuth credentials: {creds_status} ({auth_status['credentials_path']})")

    if auth_status["authenticated"]:
        token_status = click.style("Authenticated", fg="green")
    elif auth_status["token_exists"]:
        token_status = click.style("Token expired or invalid", fg="yellow")
    else:
        token_status = click.style("Not authenticated", fg="red")
    click.echo(f"Token: {token_status} ({auth_status['token_path']})")
    click.echo()

    if auth_status["authenticated"]:
        click.echo(click.style("Ready!", fg="green"))
        click.echo("Run 'gcontacts-backup backup' to back up your contacts.")
    elif not auth_status["credentials_exist"]:
        click.echo(
            click.style("Setup required: OAuth credentials not found.", fg="yellow")
        )
        click.echo("Please download credentials from Google Cloud Console")
        click.echo(f"and save to: {auth_status['credentials_path']}")
    else:
        click.echo(click.style("Authentication required.", fg="yellow"))
        click.echo("  Run: gcontacts-backup auth")


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        # Create config file (fails if already exists)
        gcontacts-backup init-config

        # Overwrite existing config file
        gcontacts-backup init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Edit the file to uncomment and configure desired options")
        click.echo("2. Run 'gcontacts-backup --help' to see available commands")
        logger.info(f"Created configuration file: {config_file}")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
