"""
On-disk cache for the OAuth bearer token.

The cached token is a small JSON object::

    {
        "access_token": "ya29...",
        "refresh_token": "1//0g...",
        "expiry": "2024-01-20T11:30:00Z"
    }

``refresh_token`` is omitted when the authorization server did not issue
one. The file is owned by this tool alone and is written with 0600
permissions inside a 0700 directory.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Token cache file name inside the configuration directory
TOKEN_FILE_NAME = "token.json"

logger = logging.getLogger(__name__)


def _format_expiry(expiry: datetime) -> str:
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_expiry(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class StoredToken:
    """
    A cached credential.

    Attributes:
        access_token: Bearer token used to sign requests
        refresh_token: Long-lived token used to obtain new access tokens
        expiry: Timezone-aware UTC expiry, or None if unknown
    """

    access_token: str
    refresh_token: str | None = None
    expiry: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"access_token": self.access_token}
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        data["expiry"] = _format_expiry(self.expiry) if self.expiry else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredToken:
        """
        Build a StoredToken from its JSON form.

        Raises:
            ValueError: If access_token is missing or a field is malformed
        """
        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("token file has no access_token")

        refresh_token = data.get("refresh_token") or None
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ValueError("refresh_token must be a string")

        expiry_value = data.get("expiry")
        if expiry_value and not isinstance(expiry_value, str):
            raise ValueError(f"expiry must be a string, got {expiry_value!r}")
        expiry = _parse_expiry(expiry_value) if expiry_value else None

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expiry=expiry,
        )


class TokenStore:
    """
    Persists and retrieves the cached credential at a fixed path.

    Usage:
        store = TokenStore(Path("~/.gcontacts-backup/token.json"))
        token = store.load()
        store.save(StoredToken(access_token="...", refresh_token="..."))
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> StoredToken | None:
        """
        Load the cached token.

        Returns:
            StoredToken, or None if the file is missing or unreadable
        """
        if not self.path.exists():
            logger.debug(f"No token file found at {self.path}")
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("token file must contain a JSON object")
            token = StoredToken.from_dict(data)
            logger.debug(f"Loaded cached token from {self.path}")
            return token
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Ignoring invalid token file {self.path}: {e}")
            return None

    def save(self, token: StoredToken) -> None:
        """
        Write the token with owner-only permissions.

        Creates the parent directory (0700) if needed.

        Raises:
            OSError: If the file cannot be written
        """
        self.path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        # mkstemp creates the file as 0600
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(token.to_dict(), f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved token to {self.path}")

    def clear(self) -> bool:
        """
        Remove the cached token.

        Returns:
            True if a token file was removed, False if none existed
        """
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Cleared cached token {self.path}")
            return True
        return False
