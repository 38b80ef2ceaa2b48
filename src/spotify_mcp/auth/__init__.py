"""Authentication module for Spotify MCP."""

from spotify_mcp.auth.callback_server import (
    AuthorizationCallbackListener,
    CallbackOutcome,
    ListenerState,
)
from spotify_mcp.auth.exceptions import (
    AuthErrorKind,
    InvalidStateError,
    NotAuthenticatedError,
    ReauthorizationRequiredError,
    SpotifyAuthError,
    StorageError,
    TokenExchangeError,
    TokenRefreshError,
)
from spotify_mcp.auth.manager import CredentialManager
from spotify_mcp.auth.records import CredentialRecord, HandshakeRecord
from spotify_mcp.auth.secret_store import (
    FileSecretStore,
    KeyringSecretStore,
    SecretStore,
    create_secret_store,
)
from spotify_mcp.auth.token_exchange import TokenExchanger, TokenResponse

__all__ = [
    # Lifecycle
    "CredentialManager",
    "CredentialRecord",
    "HandshakeRecord",
    # Callback listener
    "AuthorizationCallbackListener",
    "CallbackOutcome",
    "ListenerState",
    # Storage
    "SecretStore",
    "FileSecretStore",
    "KeyringSecretStore",
    "create_secret_store",
    # Token endpoint
    "TokenExchanger",
    "TokenResponse",
    # Errors
    "AuthErrorKind",
    "SpotifyAuthError",
    "NotAuthenticatedError",
    "ReauthorizationRequiredError",
    "InvalidStateError",
    "TokenExchangeError",
    "TokenRefreshError",
    "StorageError",
]
