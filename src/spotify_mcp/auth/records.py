"""Persisted authentication records."""

from dataclasses import dataclass
from typing import Self

from spotify_mcp.auth.constants import REFRESH_SKEW_SEC


@dataclass
class CredentialRecord:
    """Stored Spotify tokens.

    ``expires_at`` is epoch milliseconds.
    """

    access_token: str
    expires_at: int
    refresh_token: str | None = None
    scope: str = ""

    def is_expired(self, now: float, skew: int = REFRESH_SKEW_SEC) -> bool:
        """Check if token is expired or will expire within ``skew`` seconds.

        Args:
            now: Current time as epoch seconds
            skew: Safety margin in seconds
        """
        return now * 1000 >= self.expires_at - skew * 1000

    def has_refresh_token(self) -> bool:
        """Check if a refresh token is available."""
        return bool(self.refresh_token)

    def seconds_until_expiry(self, now: float) -> float:
        """Seconds until Spotify expires the token (zero once past)."""
        return max(0.0, (self.expires_at - now * 1000) / 1000)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "scope": self.scope,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create from dictionary."""
        return cls(
            access_token=data["access_token"],
            expires_at=int(data["expires_at"]),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope") or "",
        )


@dataclass
class HandshakeRecord:
    """A pending authorization attempt: state and PKCE verifier."""

    state: str
    code_verifier: str

    def to_dict(self) -> dict:
        return {"state": self.state, "code_verifier": self.code_verifier}

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        return cls(state=data["state"], code_verifier=data["code_verifier"])
