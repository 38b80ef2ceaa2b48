"""Exceptions raised by the credential lifecycle.

Every failure carries an ``AuthErrorKind`` so callers can branch on the
kind instead of matching message text.
"""

from enum import Enum


class AuthErrorKind(str, Enum):
    """Tag identifying why a token could not be produced."""

    NOT_AUTHENTICATED = "not_authenticated"
    REAUTHORIZATION_REQUIRED = "reauthorization_required"
    INVALID_STATE = "invalid_state"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    STORAGE_FAILURE = "storage_failure"


class SpotifyAuthError(Exception):
    """Base exception for authentication failures."""

    kind: AuthErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(SpotifyAuthError):
    """No credential record exists; the authorization flow must be run."""

    kind = AuthErrorKind.NOT_AUTHENTICATED

    def __init__(self, message: str | None = None):
        super().__init__(
            message or "Not authenticated with Spotify. Use spotify_authorize first."
        )


class ReauthorizationRequiredError(SpotifyAuthError):
    """Access token expired and there is no refresh token to renew it."""

    kind = AuthErrorKind.REAUTHORIZATION_REQUIRED

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Access token expired and no refresh token is available. Please re-authorize."
        )


class InvalidStateError(SpotifyAuthError):
    """Callback state does not match the pending authorization."""

    kind = AuthErrorKind.INVALID_STATE

    def __init__(self, message: str | None = None):
        super().__init__(message or "Invalid state parameter")


class TokenExchangeError(SpotifyAuthError):
    """The authorization code could not be exchanged for tokens."""

    kind = AuthErrorKind.TOKEN_EXCHANGE_FAILED

    def __init__(self, cause: str, status_code: int | None = None):
        super().__init__(f"Failed to exchange authorization code for tokens: {cause}")
        self.cause = cause
        self.status_code = status_code


class TokenRefreshError(SpotifyAuthError):
    """The refresh token was rejected or the token endpoint was unreachable."""

    kind = AuthErrorKind.TOKEN_REFRESH_FAILED

    def __init__(self, cause: str, status_code: int | None = None):
        super().__init__(f"Failed to refresh access token: {cause}. Please re-authorize.")
        self.cause = cause
        self.status_code = status_code


class StorageError(SpotifyAuthError):
    """Credential storage could not be read or written."""

    kind = AuthErrorKind.STORAGE_FAILURE
