"""
gcontacts_backup.auth - OAuth2 token lifecycle

Loads, refreshes and obtains the credential used to sign People API
requests.
"""

from gcontacts_backup.auth.google_auth import (
    SCOPES,
    AuthenticationError,
    AuthorizationCancelledError,
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    ClientSecrets,
    ClientSecretsError,
    GoogleAuth,
    load_client_secrets,
)
from gcontacts_backup.auth.token_store import StoredToken, TokenStore

__all__ = [
    "SCOPES",
    "AuthenticationError",
    "AuthorizationCancelledError",
    "AuthorizationDeniedError",
    "AuthorizationTimeoutError",
    "ClientSecrets",
    "ClientSecretsError",
    "GoogleAuth",
    "StoredToken",
    "TokenStore",
    "load_client_secrets",
]
