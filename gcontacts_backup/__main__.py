"""
Entry point for running gcontacts_backup as a module.

Usage:
    python -m gcontacts_backup --help
    python -m gcontacts_backup auth
    python -m gcontacts_backup backup --format csv
"""

from gcontacts_backup.cli import cli

if __name__ == "__main__":
    cli()
