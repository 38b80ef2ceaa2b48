"""Shared authentication constants and utilities."""

import asyncio
import fcntl
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

# OAuth endpoints
AUTHORIZE_ENDPOINT = "https://accounts.spotify.com/authorize"
TOKEN_ENDPOINT = "https://accounts.spotify.com/api/token"

SCOPES = [
    "user-read-private",
    "user-read-email",
    "user-library-read",
    "user-library-modify",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "user-read-recently-played",
    "user-top-read",
    "playlist-read-private",
    "playlist-read-collaborative",
    "playlist-modify-private",
    "playlist-modify-public",
    "user-follow-read",
    "user-follow-modify",
]

# Tokens are treated as expired this long before Spotify expires them
REFRESH_SKEW_SEC = 60

# Used when the token endpoint omits expires_in
DEFAULT_EXPIRES_IN_SEC = 3600

DEFAULT_CALLBACK_TIMEOUT_SEC = 300

AUTH_LOCK_TIMEOUT_SEC = 30


@asynccontextmanager
async def auth_file_lock(lock_path: Path, timeout: int = AUTH_LOCK_TIMEOUT_SEC):
    """Context manager for exclusive access to the credential files.

    Prevents two server processes from refreshing the same refresh token.

    Usage:
        async with auth_file_lock(settings.lock_file):
            # Read, refresh and write the credential record
            ...

    Args:
        lock_path: Lock file next to the credential record
        timeout: Maximum seconds to wait for lock (default: 30)

    Raises:
        TimeoutError: If lock cannot be acquired within timeout
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    lock_file = None

    try:
        lock_file = open(lock_path, "w")

        start_time = time.monotonic()
        while True:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                logger.debug(f"Acquired auth lock {lock_path}")
                break
            except BlockingIOError:
                if time.monotonic() - start_time >= timeout:
                    raise TimeoutError(
                        f"Could not acquire auth lock after {timeout}s. "
                        "Another process may be refreshing the token."
                    )
                await asyncio.sleep(0.1)

        yield

    finally:
        if lock_file:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
                logger.debug(f"Released auth lock {lock_path}")
            except OSError:
                pass
            lock_file.close()
