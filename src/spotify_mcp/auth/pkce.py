"""PKCE helpers for the Spotify authorization code flow.

Spotify's authorization code flow with PKCE lets the server obtain a
refresh token without the code being usable by anyone who intercepts the
redirect: the token endpoint only accepts the code together with the
verifier whose hash was sent in the authorization request.
"""

import base64
import hashlib
import secrets

STATE_BYTES = 16
VERIFIER_BYTES = 32


def _b64url(data: bytes) -> str:
    """Base64 URL encode without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_state() -> str:
    """Generate a random state parameter for CSRF protection."""
    return secrets.token_bytes(STATE_BYTES).hex()


def generate_code_verifier() -> str:
    """Generate a cryptographically random code verifier for PKCE.

    Returns:
        URL-safe base64 encoded random string (43 characters)
    """
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(code_verifier: str) -> str:
    """Generate SHA256 code challenge from verifier for PKCE.

    Args:
        code_verifier: The code verifier string

    Returns:
        Base64 URL encoded SHA256 hash of the verifier
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _b64url(digest)
