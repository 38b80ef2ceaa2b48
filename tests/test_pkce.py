"""Tests for PKCE and state generation."""

import re

from spotify_mcp.auth.pkce import (
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
)

BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")


class TestGenerateState:
    """Tests for state parameter generation."""

    def test_state_is_32_hex_chars(self):
        """16 random bytes are hex encoded."""
        state = generate_state()
        assert re.fullmatch(r"[0-9a-f]{32}", state)

    def test_state_is_random(self):
        """Each attempt gets a fresh state."""
        assert len({generate_state() for _ in range(20)}) == 20


class TestCodeVerifier:
    """Tests for PKCE code verifier generation."""

    def test_verifier_length(self):
        """32 random bytes encode to 43 characters without padding."""
        verifier = generate_code_verifier()
        assert len(verifier) == 43
        assert BASE64URL.match(verifier)

    def test_verifier_within_rfc_bounds(self):
        """Verifier length stays within 43-128."""
        for _ in range(10):
            assert 43 <= len(generate_code_verifier()) <= 128


class TestCodeChallenge:
    """Tests for S256 code challenge."""

    def test_rfc7636_vector(self):
        """Matches the example in RFC 7636 appendix B."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_challenge_has_no_padding(self):
        """Challenge is base64url without '=' padding."""
        challenge = generate_code_challenge(generate_code_verifier())
        assert "=" not in challenge
        assert BASE64URL.match(challenge)

    def test_challenge_is_deterministic(self):
        """Same verifier gives the same challenge."""
        verifier = generate_code_verifier()
        assert generate_code_challenge(verifier) == generate_code_challenge(verifier)
