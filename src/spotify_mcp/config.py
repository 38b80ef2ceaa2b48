"""Configuration management using Pydantic Settings."""

import ipaddress
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Config file location
CONFIG_PATH = Path.home() / ".config" / "spotify-mcp" / "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from YAML config file."""

    def get_field_value(
        self, field: Any, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get field value from YAML config."""
        config = self._load_config()
        if field_name in config:
            return config[field_name], field_name, False
        return None, field_name, False

    def _load_config(self) -> dict:
        """Load config from YAML file."""
        if not CONFIG_PATH.exists():
            return {}
        try:
            with open(CONFIG_PATH) as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError:
            return {}

    def __call__(self) -> dict[str, Any]:
        """Return all config values."""
        return self._load_config()


def validate_redirect_uri(uri: str | None) -> str:
    """Validate the OAuth redirect URI.

    The callback listener binds to the host and port of this URI, so only
    http(s) URIs pointing at the local machine are accepted.

    Args:
        uri: Redirect URI registered with the Spotify application

    Returns:
        The redirect URI, unchanged

    Raises:
        ValueError: If the URI is empty, malformed or not a loopback address
    """
    if not uri:
        raise ValueError("Redirect URI cannot be empty")

    parsed = urlparse(uri)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Redirect URI must use http or https: {uri}")

    host = parsed.hostname
    if not host:
        raise ValueError(f"Redirect URI has no host: {uri}")

    if host != "localhost":
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            address = None
        if address is None or not address.is_loopback:
            raise ValueError(f"Redirect URI must point at this machine: {uri}")

    try:
        parsed.port
    except ValueError as e:
        raise ValueError(f"Invalid port in redirect URI: {uri}") from e

    return uri


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    client_id: str | None = Field(default=None, description="Spotify application client ID")
    client_secret: str | None = Field(
        default=None, description="Spotify application client secret"
    )
    redirect_uri: str = Field(
        default=DEFAULT_REDIRECT_URI,
        description="Redirect URI registered with the Spotify application",
    )
    timeout: int = Field(default=30, ge=5, le=120, description="HTTP timeout in seconds")
    cache_dir: Path = Field(
        default=Path.home() / ".config" / "spotify-mcp",
        description="Directory for tokens and config",
    )
    storage_backend: Literal["file", "keyring"] = Field(
        default="file",
        description="Where credentials are kept: owner-only files or the OS keyring",
    )
    callback_timeout: int = Field(
        default=300,
        ge=30,
        le=600,
        description="Seconds the OAuth callback listener waits for the redirect",
    )
    log_level: str = Field(default="INFO", description="Logging level for the server")

    @field_validator("redirect_uri", mode="after")
    @classmethod
    def check_redirect_uri(cls, v: str) -> str:
        """Reject redirect URIs the callback listener cannot serve."""
        return validate_redirect_uri(v)

    @field_validator("cache_dir", mode="after")
    @classmethod
    def ensure_cache_dir_exists(cls, v: Path) -> Path:
        """Create cache directory (owner-only) if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True, mode=0o700)
        return v

    @property
    def token_file(self) -> Path:
        """Path to the credential record."""
        return self.cache_dir / "tokens.json"

    @property
    def handshake_file(self) -> Path:
        """Path to the pending authorization (state + PKCE verifier)."""
        return self.cache_dir / "handshake.json"

    @property
    def lock_file(self) -> Path:
        """Path to the lock file guarding credential refresh."""
        return self.cache_dir / ".auth.lock"

    def require_client_credentials(self) -> tuple[str, str]:
        """Return (client_id, client_secret) or raise if either is missing."""
        if not self.client_id or not self.client_secret:
            raise ValueError(
                "SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET must be set"
            )
        return self.client_id, self.client_secret

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources - priority: env > yaml > defaults."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
