"""
gcontacts_backup.config - Configuration management module

Contains configuration loading and validation. The merged per-invocation
settings live in gcontacts_backup.config.settings.
"""

from gcontacts_backup.config.loader import ConfigError, ConfigLoader

__all__ = [
    "ConfigError",
    "ConfigLoader",
]
