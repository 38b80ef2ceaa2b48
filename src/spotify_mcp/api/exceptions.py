"""Exceptions for Spotify Web API."""


class SpotifyAPIError(Exception):
    """Base exception for Spotify Web API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TokenExpiredError(SpotifyAPIError):
    """Spotify rejected the access token."""


class RateLimitError(SpotifyAPIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, 429)
        self.retry_after = retry_after
