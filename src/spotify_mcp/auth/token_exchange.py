"""Token endpoint calls: authorization code exchange and refresh.

Neither call is retried. Authorization codes are single-use, so a
second attempt with the same code always fails upstream, and a refresh
failure is reported so the user can re-authorize.
"""

import logging
from dataclasses import dataclass

import httpx

from spotify_mcp.auth.constants import DEFAULT_EXPIRES_IN_SEC, TOKEN_ENDPOINT
from spotify_mcp.auth.exceptions import TokenExchangeError, TokenRefreshError

logger = logging.getLogger(__name__)


@dataclass
class TokenResponse:
    """Parsed token endpoint response."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None


def _error_message(response: httpx.Response, default: str) -> str:
    """Extract the OAuth error description from a failed response."""
    try:
        error_data = response.json()
    except ValueError:
        return default
    if isinstance(error_data, dict):
        if error_data.get("error_description"):
            return error_data["error_description"]
        if error_data.get("error"):
            return error_data["error"]
    return default


class TokenExchanger:
    """Performs the two round trips against the Spotify token endpoint."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_endpoint: str = TOKEN_ENDPOINT,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_endpoint = token_endpoint
        self.timeout = timeout

    async def _post(
        self, data: dict, auth: httpx.BasicAuth | None, error_cls: type
    ) -> TokenResponse:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self.token_endpoint,
                    data=data,
                    auth=auth,
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
            except httpx.RequestError as e:
                logger.error(f"Network error calling token endpoint: {e}")
                raise error_cls(f"network error: {e}") from e

        if not response.is_success:
            error_msg = _error_message(response, f"status {response.status_code}")
            logger.error(f"Token endpoint rejected {data['grant_type']}: {error_msg}")
            raise error_cls(error_msg, response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise error_cls("token endpoint returned invalid JSON", response.status_code) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise error_cls("no access_token in token response", response.status_code)

        expires_in = payload.get("expires_in")
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN_SEC
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError) as e:
            raise error_cls(
                f"invalid expires_in in token response: {expires_in!r}", response.status_code
            ) from e

        return TokenResponse(
            access_token=access_token,
            expires_in=expires_in,
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
        )

    async def exchange(self, code: str, code_verifier: str, redirect_uri: str) -> TokenResponse:
        """Exchange an authorization code for access and refresh tokens.

        Raises:
            TokenExchangeError: On a non-success response or transport error
        """
        token = await self._post(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.client_id,
                "code_verifier": code_verifier,
            },
            None,
            TokenExchangeError,
        )
        logger.info(
            f"Token exchange successful, refresh_token: {'present' if token.refresh_token else 'absent'}"
        )
        return token

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Obtain a new access token using a refresh token.

        Raises:
            TokenRefreshError: On a non-success response or transport error
        """
        token = await self._post(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
            },
            httpx.BasicAuth(self.client_id, self.client_secret),
            TokenRefreshError,
        )
        logger.info(
            f"Token refreshed, new refresh_token: {'present' if token.refresh_token else 'absent'}"
        )
        return token
