"""Shared fixtures for the credential lifecycle tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from spotify_mcp.auth.manager import CredentialManager
from spotify_mcp.auth.records import CredentialRecord
from spotify_mcp.auth.secret_store import FileSecretStore
from spotify_mcp.auth.token_exchange import TokenExchanger, TokenResponse

REDIRECT_URI = "http://127.0.0.1:8888/callback"
START_TIME = 1_700_000_000.0


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """File store writing into a temporary directory."""
    return FileSecretStore(tmp_path / "tokens.json", tmp_path / "handshake.json")


@pytest.fixture
def exchanger():
    """Token endpoint client with mocked round trips."""
    mock = MagicMock(spec=TokenExchanger)
    mock.exchange = AsyncMock(
        return_value=TokenResponse(
            access_token="access-1",
            expires_in=3600,
            refresh_token="refresh-1",
            scope="user-read-private",
        )
    )
    mock.refresh = AsyncMock(
        return_value=TokenResponse(access_token="access-2", expires_in=3600)
    )
    return mock


@pytest.fixture
def manager(store, exchanger, clock):
    return CredentialManager(
        client_id="client-id",
        redirect_uri=REDIRECT_URI,
        store=store,
        exchanger=exchanger,
        clock=clock,
    )


def make_record(
    clock: FakeClock,
    expires_in: float = 3600,
    access_token: str = "access-0",
    refresh_token: str | None = "refresh-0",
    scope: str = "user-read-private",
) -> CredentialRecord:
    """Credential record expiring ``expires_in`` seconds after the clock's now."""
    return CredentialRecord(
        access_token=access_token,
        expires_at=int((clock.now + expires_in) * 1000),
        refresh_token=refresh_token,
        scope=scope,
    )
