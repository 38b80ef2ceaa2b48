"""Credential lifecycle for the Spotify Web API.

``CredentialManager`` is the only component that reads or writes the
stored credential and handshake records. It is constructed once per
process and handed to the API client and the MCP tools.

Every outbound API call gets its bearer token from
``get_valid_access_token()``, which refreshes a stale token at most once
no matter how many callers ask for it concurrently.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable
from urllib.parse import urlencode, urlparse

from spotify_mcp.auth.callback_server import AuthorizationCallbackListener
from spotify_mcp.auth.constants import (
    AUTHORIZE_ENDPOINT,
    DEFAULT_CALLBACK_TIMEOUT_SEC,
    SCOPES,
    auth_file_lock,
)
from spotify_mcp.auth.exceptions import (
    InvalidStateError,
    NotAuthenticatedError,
    ReauthorizationRequiredError,
)
from spotify_mcp.auth.pkce import (
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
)
from spotify_mcp.auth.records import CredentialRecord, HandshakeRecord
from spotify_mcp.auth.secret_store import SecretStore, create_secret_store
from spotify_mcp.auth.token_exchange import TokenExchanger, TokenResponse
from spotify_mcp.config import Settings

logger = logging.getLogger(__name__)


class CredentialManager:
    """Owns the OAuth2 + PKCE token lifecycle."""

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        store: SecretStore,
        exchanger: TokenExchanger,
        lock_path: Path | None = None,
        clock: Callable[[], float] = time.time,
        callback_timeout: float = DEFAULT_CALLBACK_TIMEOUT_SEC,
    ):
        """
        Args:
            client_id: Spotify application client ID
            redirect_uri: Redirect URI registered with the application
            store: Storage for the credential and handshake records
            exchanger: Token endpoint client
            lock_path: File lock serializing refreshes across processes
            clock: Returns the current time as epoch seconds
            callback_timeout: Seconds the callback listener waits
        """
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.store = store
        self.exchanger = exchanger
        self.lock_path = lock_path
        self.clock = clock
        self.callback_timeout = callback_timeout
        self._refresh_lock = asyncio.Lock()
        self._pending_refresh: asyncio.Task | None = None
        self._listener: AuthorizationCallbackListener | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialManager":
        """Build a manager from application settings.

        Raises:
            ValueError: If the client ID or secret is not configured
        """
        client_id, client_secret = settings.require_client_credentials()
        return cls(
            client_id=client_id,
            redirect_uri=settings.redirect_uri,
            store=create_secret_store(settings),
            exchanger=TokenExchanger(client_id, client_secret, timeout=settings.timeout),
            lock_path=settings.lock_file,
            callback_timeout=settings.callback_timeout,
        )

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def generate_auth_url(self) -> str:
        """Start an authorization attempt and return the URL for the user.

        Overwrites any previous unconsumed handshake, so a callback for an
        earlier attempt is rejected afterwards.
        """
        state = generate_state()
        code_verifier = generate_code_verifier()
        code_challenge = generate_code_challenge(code_verifier)

        self.store.save_handshake(HandshakeRecord(state=state, code_verifier=code_verifier))

        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": " ".join(SCOPES),
            "redirect_uri": self.redirect_uri,
            "state": state,
            "code_challenge_method": "S256",
            "code_challenge": code_challenge,
        }
        return f"{AUTHORIZE_ENDPOINT}?{urlencode(params)}"

    async def begin_authorization(self) -> str:
        """Generate the authorization URL and (re)start the callback listener.

        A listener left over from an earlier attempt is closed first so its
        port is released.
        """
        await self.close()

        url = self.generate_auth_url()

        parsed = urlparse(self.redirect_uri)
        port = parsed.port
        if port is None:
            port = 443 if parsed.scheme == "https" else 80
        listener = AuthorizationCallbackListener(
            on_callback=self.exchange_code_for_token,
            host=parsed.hostname or "127.0.0.1",
            port=port,
            callback_path=parsed.path or "/",
            timeout=self.callback_timeout,
        )
        listener.start()
        self._listener = listener
        return url

    @property
    def listener(self) -> AuthorizationCallbackListener | None:
        """Callback listener of the current authorization attempt, if any."""
        return self._listener

    async def close(self) -> None:
        """Stop the callback listener if one is running."""
        listener, self._listener = self._listener, None
        if listener is not None:
            await asyncio.to_thread(listener.close)

    async def __aenter__(self) -> "CredentialManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def exchange_code_for_token(self, code: str, state: str) -> None:
        """Complete the authorization attempt matching ``state``.

        Raises:
            InvalidStateError: No pending attempt, or ``state`` does not match
            TokenExchangeError: The token endpoint rejected the code
            StorageError: The new credentials could not be saved
        """
        handshake = self.store.load_handshake()
        if handshake is None or handshake.state != state:
            logger.warning("Rejected authorization callback with unknown state")
            raise InvalidStateError()

        token = await self.exchanger.exchange(code, handshake.code_verifier, self.redirect_uri)

        record = self._record_from_response(token)
        self.store.save_credentials(record)
        self.store.clear_handshake()
        logger.info("Authorization completed")

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------

    def get_credentials(self) -> CredentialRecord | None:
        """Return the stored credential record without validating it."""
        return self.store.load_credentials()

    async def get_valid_access_token(self) -> str:
        """Return an access token that is valid for at least ``REFRESH_SKEW_SEC``.

        Raises:
            NotAuthenticatedError: No credentials are stored
            ReauthorizationRequiredError: Token expired and cannot be refreshed
            TokenRefreshError: Spotify rejected the refresh
            StorageError: Credentials could not be read or written
        """
        record = self.store.load_credentials()
        if record is None:
            raise NotAuthenticatedError()

        if not record.is_expired(self.clock()):
            return record.access_token

        if not record.has_refresh_token():
            raise ReauthorizationRequiredError()

        return await self._shared_refresh(force=False)

    async def force_refresh(self) -> str:
        """Refresh the access token even if it has not expired yet."""
        return await self._shared_refresh(force=True)

    async def _shared_refresh(self, force: bool) -> str:
        """Join the in-flight refresh or start one.

        Callers arriving while a refresh is running get its result (or its
        error) instead of sending a second refresh request.
        """
        if self._pending_refresh is None:
            task = asyncio.create_task(self._refresh(force))
            self._pending_refresh = task
            task.add_done_callback(self._clear_pending_refresh)
        return await asyncio.shield(self._pending_refresh)

    def _clear_pending_refresh(self, task: asyncio.Task) -> None:
        if self._pending_refresh is task:
            self._pending_refresh = None

    async def _refresh(self, force: bool) -> str:
        async with self._refresh_lock:
            if self.lock_path is None:
                return await self._refresh_locked(force)
            async with auth_file_lock(self.lock_path):
                return await self._refresh_locked(force)

    async def _refresh_locked(self, force: bool) -> str:
        # Re-read under the lock: another process may have refreshed already
        record = self.store.load_credentials()
        if record is None:
            raise NotAuthenticatedError()

        if not force and not record.is_expired(self.clock()):
            logger.debug("Token was refreshed by another process")
            return record.access_token

        if not record.has_refresh_token():
            raise ReauthorizationRequiredError()

        token = await self.exchanger.refresh(record.refresh_token)
        new_record = self._record_from_response(token, previous=record)
        self.store.save_credentials(new_record)
        return new_record.access_token

    def _record_from_response(
        self, token: TokenResponse, previous: CredentialRecord | None = None
    ) -> CredentialRecord:
        refresh_token = token.refresh_token
        scope = token.scope
        if previous is not None:
            # Spotify does not always rotate the refresh token
            refresh_token = refresh_token or previous.refresh_token
            scope = scope or previous.scope
        return CredentialRecord(
            access_token=token.access_token,
            refresh_token=refresh_token,
            expires_at=self._now_ms() + token.expires_in * 1000,
            scope=scope or "",
        )

    # ------------------------------------------------------------------
    # Status and logout
    # ------------------------------------------------------------------

    def is_authenticated(self) -> bool:
        """True if a credential record is stored, regardless of expiry."""
        return self.store.load_credentials() is not None

    def clear_auth(self) -> None:
        """Delete stored credentials. The pending handshake is kept."""
        self.store.clear_credentials()
        logger.info("Stored Spotify credentials cleared")
