"""
OAuth2 authentication module for Google Contacts backup.

Provides OAuth 2.0 authentication with support for:
- Cached credentials in the user's configuration directory
- Automatic token refresh, falling back to a new authorization
- A browser-based authorization flow with a loopback callback listener
  that can be cancelled and times out after five minutes
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import time
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path
from typing import Any

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from gcontacts_backup.auth.local_server import (
    CallbackChannel,
    CallbackListener,
    LocalCallbackListener,
)
from gcontacts_backup.auth.token_store import TOKEN_FILE_NAME, StoredToken, TokenStore
from gcontacts_backup.config.loader import ConfigError
from gcontacts_backup.utils.paths import resolve_config_dir

# OAuth2 scopes required for Google Contacts access
SCOPES = ["https://www.googleapis.com/auth/contacts"]

# Client secrets file name inside the configuration directory
CREDENTIALS_FILE_NAME = "credentials.json"

# Seconds to wait for the user to finish authorizing in the browser
DEFAULT_AUTH_TIMEOUT = 300

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"

# How often the waiting caller checks for cancellation
CALLBACK_POLL_INTERVAL = 0.1

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails or credentials are invalid."""

    pass


class AuthorizationDeniedError(AuthenticationError):
    """Raised when the authorization callback carries an error."""

    pass


class AuthorizationTimeoutError(AuthenticationError):
    """Raised when no authorization callback arrives in time."""

    pass


class AuthorizationCancelledError(AuthenticationError):
    """Raised when the caller cancels a pending authorization."""

    pass


class ClientSecretsError(ConfigError):
    """Raised when the OAuth client secrets file is missing or malformed."""

    pass


@dataclass(frozen=True)
class ClientSecrets:
    """
    OAuth client registration read from the Google Cloud Console download.

    Attributes:
        client_id: OAuth client ID
        client_secret: OAuth client secret
        token_uri: Token endpoint used for exchange and refresh
        client_config: The full parsed file, as google-auth-oauthlib expects it
    """

    client_id: str
    client_secret: str
    token_uri: str
    client_config: dict[str, Any]


def load_client_secrets(path: Path) -> ClientSecrets:
    """
    Read an OAuth client secrets file.

    The file must hold an "installed" or "web" block with client_id and
    client_secret.

    Args:
        path: Path to the client secrets JSON file

    Returns:
        ClientSecrets parsed from the file

    Raises:
        ClientSecretsError: If the file is missing, unparsable or incomplete
    """
    path = Path(path)
    if not path.exists():
        raise ClientSecretsError(
            f"OAuth credentials file not found: {path}\n"
            "Please download your OAuth client credentials from "
            "Google Cloud Console and save them to this location."
        )

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ClientSecretsError(f"Unable to parse credentials file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ClientSecretsError(f"Credentials file {path} must contain a JSON object")

    block = data.get("installed") or data.get("web")
    if not isinstance(block, dict):
        raise ClientSecretsError(
            "Credentials file must contain 'installed' or 'web' application "
            "credentials"
        )

    client_id = block.get("client_id")
    client_secret = block.get("client_secret")
    if not client_id or not client_secret:
        raise ClientSecretsError(
            f"Credentials file {path} is missing client_id or client_secret"
        )

    return ClientSecrets(
        client_id=client_id,
        client_secret=client_secret,
        token_uri=block.get("token_uri") or DEFAULT_TOKEN_URI,
        client_config=data,
    )


def wait_for_authorization_code(
    channel: CallbackChannel,
    expected_state: str,
    timeout: float,
    cancel_event: threading.Event | None = None,
    poll_interval: float = CALLBACK_POLL_INTERVAL,
) -> str:
    """
    Block until the first of: a code, an error, cancellation or timeout.

    Args:
        channel: Channel the callback listener delivers into
        expected_state: State token embedded in the authorization URL
        timeout: Seconds to wait before giving up
        cancel_event: Set by the caller to abandon the wait
        poll_interval: Granularity of cancellation checks

    Returns:
        The authorization code

    Raises:
        AuthorizationDeniedError: Callback carried an error or a wrong state
        AuthorizationCancelledError: cancel_event was set
        AuthorizationTimeoutError: Nothing arrived within timeout seconds
    """
    deadline = time.monotonic() + timeout

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise AuthorizationCancelledError("Authorization was cancelled")

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise AuthorizationTimeoutError(
                f"Authorization timed out after {timeout:g} seconds"
            )

        result = channel.get(timeout=min(poll_interval, remaining))
        if result is None:
            continue

        if result.error:
            raise AuthorizationDeniedError(f"Authorization failed: {result.error}")
        if result.state != expected_state:
            raise AuthorizationDeniedError(
                "Authorization failed: state mismatch in callback"
            )
        if not result.code:
            raise AuthorizationDeniedError(
                "Authorization failed: no authorization code received"
            )
        return result.code


def _to_stored_token(creds: Credentials) -> StoredToken:
    expiry = creds.expiry.replace(tzinfo=timezone.utc) if creds.expiry else None
    return StoredToken(
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        expiry=expiry,
    )


class GoogleAuth:
    """
    OAuth2 authentication manager for a single Google account.

    Handles credential loading, token refresh and the interactive flow.

    Attributes:
        config_dir: Directory holding the token cache
        credentials_path: Path to OAuth client secrets file
        token_store: Cache for the bearer token
        auth_timeout: Seconds to wait for the browser callback

    Usage:
        auth = GoogleAuth()

        # Cached, refreshed or freshly authorized credentials
        creds = auth.authenticate()

        # Credentials only if available without user interaction
        creds = auth.get_credentials()
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        credentials_path: Path | None = None,
        token_store: TokenStore | None = None,
        auth_timeout: float = DEFAULT_AUTH_TIMEOUT,
        listener_factory: Callable[[], CallbackListener] | None = None,
        browser_launcher: Callable[[str], bool] | None = None,
        on_authorization_url: Callable[[str], None] | None = None,
    ):
        """
        Initialize the authentication manager.

        Args:
            config_dir: Configuration directory. Defaults to ~/.gcontacts-backup/
                       or $GCONTACTS_BACKUP_CONFIG_DIR
            credentials_path: OAuth client secrets file
                       (default: <config_dir>/credentials.json)
            token_store: Token cache (default: <config_dir>/token.json)
            auth_timeout: Seconds to wait for the authorization callback
            listener_factory: Creates the callback listener
                       (default: LocalCallbackListener on an ephemeral port)
            browser_launcher: Opens a URL, returning False on failure
                       (default: webbrowser.open)
            on_authorization_url: Receives the authorization URL so it can be
                       shown to the user (default: logged at INFO)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.credentials_path = (
            Path(credentials_path)
            if credentials_path is not None
            else self.config_dir / CREDENTIALS_FILE_NAME
        )
        self.token_store = token_store or TokenStore(self.config_dir / TOKEN_FILE_NAME)
        self.auth_timeout = auth_timeout
        self._listener_factory = listener_factory or LocalCallbackListener
        self._browser_launcher = browser_launcher or webbrowser.open
        self._on_authorization_url = on_authorization_url

    def load_client_secrets(self) -> ClientSecrets:
        return load_client_secrets(self.credentials_path)

    def _credentials_from_token(
        self, token: StoredToken, client: ClientSecrets
    ) -> Credentials:
        # google-auth compares expiry against naive UTC datetimes
        expiry = (
            token.expiry.astimezone(timezone.utc).replace(tzinfo=None)
            if token.expiry
            else None
        )
        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=client.token_uri,
            client_id=client.client_id,
            client_secret=client.client_secret,
            scopes=SCOPES,
            expiry=expiry,
        )

    def _save_credentials(self, creds: Credentials) -> None:
        try:
            self.token_store.save(_to_stored_token(creds))
        except OSError as e:
            logger.warning(f"Failed to save token: {e}")

    def _refresh_credentials(self, creds: Credentials) -> bool:
        """
        Attempt to refresh expired credentials.

        Returns:
            True if refresh succeeded, False otherwise
        """
        if not creds.refresh_token:
            logger.debug("No refresh token available")
            return False

        try:
            creds.refresh(Request())
            logger.debug("Successfully refreshed credentials")
            return True
        except (RefreshError, TransportError) as e:
            logger.warning(f"Failed to refresh credentials: {e}")
            return False

    def _cached_credentials(self, client: ClientSecrets) -> Credentials | None:
        token = self.token_store.load()
        if token is None:
            return None

        creds = self._credentials_from_token(token, client)
        if creds.valid:
            return creds

        if self._refresh_credentials(creds):
            self._save_credentials(creds)
            return creds

        return None

    def get_credentials(self) -> Credentials | None:
        """
        Get valid credentials without user interaction.

        Uses the cached token, refreshing it when expired.

        Returns:
            Valid Credentials object, or None if not available

        Raises:
            ClientSecretsError: If the client secrets file is missing or invalid
        """
        return self._cached_credentials(self.load_client_secrets())

    def authenticate(
        self,
        force_reauth: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> Credentials:
        """
        Produce credentials that can sign People API requests.

        Cached credentials are used when valid, refreshed when expired;
        otherwise the interactive authorization flow runs.

        Args:
            force_reauth: Ignore cached credentials and re-authorize
            cancel_event: Set by the caller to abandon a pending authorization

        Returns:
            Valid Credentials object

        Raises:
            ClientSecretsError: If the client secrets file is missing or invalid
            AuthenticationError: If the authorization flow fails
        """
        client = self.load_client_secrets()

        if not force_reauth:
            creds = self._cached_credentials(client)
            if creds is not None:
                logger.info("Using existing credentials")
                return creds

        logger.info("Starting OAuth flow")
        creds = self.run_authorization_flow(client, cancel_event=cancel_event)
        self._save_credentials(creds)
        logger.info("Successfully authenticated")
        return creds

    def _open_browser(self, url: str) -> None:
        try:
            opened = self._browser_launcher(url)
        except webbrowser.Error as e:
            logger.warning(f"Couldn't open browser automatically: {e}")
            return
        if not opened:
            logger.warning("Couldn't open browser automatically")

    def run_authorization_flow(
        self,
        client: ClientSecrets,
        cancel_event: threading.Event | None = None,
    ) -> Credentials:
        """
        Run the browser authorization flow and exchange the code.

        Binds a loopback listener, sends the user to Google's consent page and
        waits for the redirect. The listener is closed before returning.

        Args:
            client: OAuth client registration
            cancel_event: Set by the caller to abandon the wait

        Returns:
            Newly issued Credentials

        Raises:
            AuthorizationDeniedError: The user denied access or state mismatched
            AuthorizationTimeoutError: No callback within auth_timeout seconds
            AuthorizationCancelledError: cancel_event was set
            AuthenticationError: The listener could not start or the code
                exchange failed
        """
        try:
            listener = self._listener_factory()
        except OSError as e:
            raise AuthenticationError(f"Failed to start local server: {e}") from e

        channel = CallbackChannel()
        state = secrets.token_urlsafe(16)

        try:
            listener.start(channel.deliver)

            flow = Flow.from_client_config(
                client.client_config,
                scopes=SCOPES,
                redirect_uri=listener.redirect_uri,
            )
            auth_url, _ = flow.authorization_url(
                access_type="offline", prompt="consent", state=state
            )

            if self._on_authorization_url is not None:
                self._on_authorization_url(auth_url)
            else:
                logger.info(f"Please visit this URL to authorize access: {auth_url}")
            self._open_browser(auth_url)

            code = wait_for_authorization_code(
                channel, state, self.auth_timeout, cancel_event=cancel_event
            )
        finally:
            listener.close()

        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error(f"Failed to exchange authorization code: {e}")
            raise AuthenticationError(
                f"Failed to exchange authorization code: {e}"
            ) from e

        creds: Credentials = flow.credentials
        return creds

    def is_authenticated(self) -> bool:
        """
        Check whether valid credentials are available without interaction.

        Returns:
            True if valid credentials exist, False otherwise (including when
            the client secrets file is missing)
        """
        try:
            return self.get_credentials() is not None
        except ClientSecretsError:
            return False

    def clear_credentials(self) -> bool:
        """
        Remove the cached token.

        Returns:
            True if credentials were removed, False if they didn't exist
        """
        return self.token_store.clear()

    def get_auth_status(self) -> dict[str, object]:
        """
        Get authentication status.

        Returns:
            Dictionary with config_dir, credentials_path, credentials_exist,
            token_path, token_exists and authenticated entries
        """
        return {
            "config_dir": str(self.config_dir),
            "credentials_path": str(self.credentials_path),
            "credentials_exist": self.credentials_path.exists(),
            "token_path": str(self.token_store.path),
            "token_exists": self.token_store.exists(),
            "authenticated": self.is_authenticated(),
        }
