"""Tests for persisted authentication records."""

from spotify_mcp.auth.records import CredentialRecord, HandshakeRecord

NOW = 1_700_000_000.0


def _record(expires_in: float, refresh_token: str | None = "r") -> CredentialRecord:
    return CredentialRecord(
        access_token="a",
        expires_at=int((NOW + expires_in) * 1000),
        refresh_token=refresh_token,
    )


class TestCredentialRecord:
    """Tests for CredentialRecord."""

    def test_not_expired_well_before_expiry(self):
        """Token with an hour left is valid."""
        assert not _record(3600).is_expired(NOW)

    def test_expired_within_skew(self):
        """Token expiring in 30 seconds is treated as expired."""
        assert _record(30).is_expired(NOW)

    def test_expired_exactly_at_skew_boundary(self):
        """Token with exactly 60 seconds left is expired."""
        assert _record(60).is_expired(NOW)

    def test_valid_just_outside_skew(self):
        """Token with 61 seconds left is still valid."""
        assert not _record(61).is_expired(NOW)

    def test_expired_in_past(self):
        """Token that already expired is expired."""
        assert _record(-10).is_expired(NOW)

    def test_custom_skew(self):
        """Skew can be overridden."""
        assert not _record(30).is_expired(NOW, skew=0)

    def test_has_refresh_token(self):
        """Empty or missing refresh token counts as absent."""
        assert _record(3600).has_refresh_token()
        assert not _record(3600, refresh_token=None).has_refresh_token()
        assert not _record(3600, refresh_token="").has_refresh_token()

    def test_seconds_until_expiry(self):
        """Remaining lifetime is reported in seconds and never negative."""
        assert _record(120).seconds_until_expiry(NOW) == 120
        assert _record(-5).seconds_until_expiry(NOW) == 0

    def test_from_dict_minimal(self):
        """Refresh token and scope are optional."""
        record = CredentialRecord.from_dict({"access_token": "a", "expires_at": 123})

        assert record.access_token == "a"
        assert record.expires_at == 123
        assert record.refresh_token is None
        assert record.scope == ""

    def test_to_dict_keys(self):
        """Serialized form uses the stored field names."""
        data = _record(3600).to_dict()
        assert set(data) == {"access_token", "refresh_token", "expires_at", "scope"}


class TestHandshakeRecord:
    """Tests for HandshakeRecord."""

    def test_from_dict(self):
        """Handshake restores state and verifier."""
        record = HandshakeRecord.from_dict({"state": "s", "code_verifier": "v"})
        assert record == HandshakeRecord(state="s", code_verifier="v")
