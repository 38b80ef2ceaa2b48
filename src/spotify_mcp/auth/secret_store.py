"""Storage for the credential record and the pending handshake.

Two backends are provided:

- ``FileSecretStore`` keeps each record in its own JSON file, written
  atomically with owner-only (0600) permissions.
- ``KeyringSecretStore`` keeps each record as a JSON string in the OS
  keyring (macOS Keychain, Windows Credential Manager, Secret Service).

Any failure to read or write is raised as ``StorageError``; a missing
record is not an error and loads as ``None``.
"""

import json
import logging
import os
import stat
from pathlib import Path

import keyring
import keyring.errors

from spotify_mcp.auth.exceptions import StorageError
from spotify_mcp.auth.records import CredentialRecord, HandshakeRecord

logger = logging.getLogger(__name__)

SERVICE_NAME = "spotify-mcp"

CREDENTIAL_KEY = "tokens"
HANDSHAKE_KEY = "handshake"


class SecretStore:
    """Load, save and clear the two authentication records.

    Subclasses implement raw access to a named JSON document.
    """

    def _read(self, name: str) -> str | None:
        raise NotImplementedError

    def _write(self, name: str, payload: str) -> None:
        raise NotImplementedError

    def _delete(self, name: str) -> None:
        raise NotImplementedError

    def _load(self, name: str) -> dict | None:
        raw = self._read(name)
        if not raw or not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored {name} record is corrupt: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Stored {name} record is corrupt: expected an object")
        return data

    def load_credentials(self) -> CredentialRecord | None:
        """Return the stored credential record, or None if there is none."""
        data = self._load(CREDENTIAL_KEY)
        if data is None:
            return None
        try:
            return CredentialRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Stored {CREDENTIAL_KEY} record is incomplete: {e}") from e

    def save_credentials(self, record: CredentialRecord) -> None:
        """Persist the credential record, replacing any previous one."""
        self._write(CREDENTIAL_KEY, json.dumps(record.to_dict(), indent=2))

    def clear_credentials(self) -> None:
        """Delete the credential record. Succeeds if nothing is stored."""
        self._delete(CREDENTIAL_KEY)

    def load_handshake(self) -> HandshakeRecord | None:
        """Return the pending handshake, or None if there is none."""
        data = self._load(HANDSHAKE_KEY)
        if data is None:
            return None
        try:
            return HandshakeRecord.from_dict(data)
        except (KeyError, TypeError) as e:
            raise StorageError(f"Stored {HANDSHAKE_KEY} record is incomplete: {e}") from e

    def save_handshake(self, record: HandshakeRecord) -> None:
        """Persist the handshake, overwriting any unconsumed one."""
        self._write(HANDSHAKE_KEY, json.dumps(record.to_dict()))

    def clear_handshake(self) -> None:
        """Delete the handshake. Succeeds if nothing is stored."""
        self._delete(HANDSHAKE_KEY)


class FileSecretStore(SecretStore):
    """Records stored as owner-only JSON files."""

    def __init__(self, token_file: Path, handshake_file: Path):
        self.paths = {
            CREDENTIAL_KEY: Path(token_file),
            HANDSHAKE_KEY: Path(handshake_file),
        }

    def _read(self, name: str) -> str | None:
        path = self.paths[name]
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def _write(self, name: str, payload: str) -> None:
        """Write with atomic rename and restrictive permissions."""
        path = self.paths[name]
        temp_file = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd = os.open(temp_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())

            # 0600 - owner read/write only, even if the temp file pre-existed
            os.chmod(temp_file, stat.S_IRUSR | stat.S_IWUSR)

            temp_file.replace(path)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e
        logger.debug(f"Saved {name} record to {path}")

    def _delete(self, name: str) -> None:
        path = self.paths[name]
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not delete {path}: {e}") from e


class KeyringSecretStore(SecretStore):
    """Records stored as JSON strings in the OS keyring."""

    def __init__(self, service_name: str = SERVICE_NAME):
        self.service_name = service_name

    def _read(self, name: str) -> str | None:
        try:
            return keyring.get_password(self.service_name, name)
        except keyring.errors.KeyringError as e:
            raise StorageError(f"Could not read {name} from keyring: {e}") from e

    def _write(self, name: str, payload: str) -> None:
        try:
            keyring.set_password(self.service_name, name, payload)
        except keyring.errors.KeyringError as e:
            raise StorageError(f"Could not write {name} to keyring: {e}") from e
        logger.debug(f"Saved {name} record to keyring")

    def _delete(self, name: str) -> None:
        try:
            keyring.delete_password(self.service_name, name)
        except keyring.errors.PasswordDeleteError:
            pass
        except keyring.errors.KeyringError as e:
            raise StorageError(f"Could not delete {name} from keyring: {e}") from e


def create_secret_store(settings) -> SecretStore:
    """Build the store selected by ``settings.storage_backend``."""
    if settings.storage_backend == "keyring":
        return KeyringSecretStore()
    return FileSecretStore(settings.token_file, settings.handshake_file)
