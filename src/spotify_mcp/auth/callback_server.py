"""Local HTTP listener for the Spotify authorization redirect.

The listener runs ``http.server`` in a daemon thread and hands the
authorization code to the credential manager's event loop. It serves a
single authorization attempt and then shuts down:

    IDLE -> LISTENING -> CLOSED

It closes after the first callback (success, failure or ``error``
parameter), when ``close()`` is called, or when the timeout elapses.
"""

import asyncio
import html
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Awaitable, Callable
from urllib.parse import parse_qs, urlparse

from spotify_mcp.auth.constants import DEFAULT_CALLBACK_TIMEOUT_SEC
from spotify_mcp.auth.exceptions import SpotifyAuthError

logger = logging.getLogger(__name__)

# Upper bound on a token exchange triggered by the callback
EXCHANGE_TIMEOUT_SEC = 60

CallbackFn = Callable[[str, str], Awaitable[None]]


class ListenerState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    CLOSED = "closed"


@dataclass
class CallbackOutcome:
    """How the authorization attempt ended."""

    success: bool
    message: str


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """Handle the OAuth redirect request."""

    timeout = 10

    def do_GET(self):
        """Handle GET request with OAuth callback."""
        listener: "AuthorizationCallbackListener" = self.server.listener  # type: ignore[attr-defined]
        parsed = urlparse(self.path)

        if parsed.path != listener.callback_path:
            self.send_response(404)
            self.end_headers()
            return

        params = parse_qs(parsed.query)

        if "error" in params:
            error = params["error"][0]
            self._send_error_response(error)
            listener.finish(False, f"Authorization failed: {error}")
            return

        code = params.get("code", [None])[0]
        state = params.get("state", [None])[0]
        if not code or not state:
            self._send_error_response("Missing authorization parameters")
            listener.finish(False, "Missing authorization parameters")
            return

        try:
            listener.dispatch(code, state)
        except SpotifyAuthError as e:
            self._send_error_response(e.message)
            listener.finish(False, e.message)
            return
        except Exception as e:
            logger.exception("Unexpected error handling authorization callback")
            self._send_error_response(str(e) or type(e).__name__)
            listener.finish(False, f"Unexpected error: {e}")
            return

        self._send_success_response()
        listener.finish(True, "Authorization successful")

    def _send_success_response(self):
        """Send success HTML response."""
        self._send_html(
            200,
            """
        <!DOCTYPE html>
        <html>
        <head><title>Spotify MCP - Authorization Successful</title></head>
        <body style="font-family: system-ui; text-align: center; padding: 50px;">
            <h1>Authorization successful!</h1>
            <p>You can close this window and return to your assistant.</p>
        </body>
        </html>
        """,
        )

    def _send_error_response(self, error: str):
        """Send error HTML response."""
        # Escape error message to prevent XSS
        safe_error = html.escape(error)
        self._send_html(
            400,
            f"""
        <!DOCTYPE html>
        <html>
        <head><title>Spotify MCP - Authorization Failed</title></head>
        <body style="font-family: system-ui; text-align: center; padding: 50px;">
            <h1>Authorization failed</h1>
            <p>Error: {safe_error}</p>
            <p>Please close this window and try again.</p>
        </body>
        </html>
        """,
        )

    def _send_html(self, status: int, body: str):
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("X-Content-Type-Options", "nosniff")
        self.send_header("X-Frame-Options", "DENY")
        self.end_headers()
        self.wfile.write(body.encode("utf-8"))

    def log_message(self, format, *args):
        """Route request logging through the module logger."""
        logger.debug("callback %s", format % args)


class AuthorizationCallbackListener:
    """Single-use local endpoint receiving the authorization redirect."""

    def __init__(
        self,
        on_callback: CallbackFn,
        host: str,
        port: int,
        callback_path: str = "/",
        timeout: float = DEFAULT_CALLBACK_TIMEOUT_SEC,
    ):
        """
        Args:
            on_callback: Coroutine function called with (code, state)
            host: Interface to bind (the redirect URI host)
            port: Port to bind (the redirect URI port; 0 picks a free port)
            callback_path: Path of the redirect URI
            timeout: Seconds to wait for the redirect before closing
        """
        self.on_callback = on_callback
        self.host = host
        self.callback_path = callback_path or "/"
        self.timeout = timeout
        self._requested_port = port
        self._state = ListenerState.IDLE
        self._server: HTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closing = threading.Event()
        self._closed: asyncio.Event | None = None
        self._outcome: CallbackOutcome | None = None

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def port(self) -> int:
        """Bound port (differs from the requested one only when it was 0)."""
        if self._server is not None:
            return self._server.server_address[1]
        return self._requested_port

    @property
    def outcome(self) -> CallbackOutcome | None:
        return self._outcome

    def start(self) -> None:
        """Bind the port and start serving. Must be called from the event loop.

        Raises:
            RuntimeError: If the listener was already started or the port is taken
        """
        if self._state != ListenerState.IDLE:
            raise RuntimeError(f"Callback listener cannot start from state {self._state.value}")

        self._loop = asyncio.get_running_loop()
        self._closed = asyncio.Event()

        try:
            server = HTTPServer((self.host, self._requested_port), OAuthCallbackHandler)
        except OSError as e:
            self._state = ListenerState.CLOSED
            self._closed.set()
            raise RuntimeError(
                f"Could not start callback listener on {self.host}:{self._requested_port}: {e}"
            ) from e

        server.listener = self  # type: ignore[attr-defined]
        server.timeout = 0.5
        self._server = server
        self._state = ListenerState.LISTENING

        self._thread = threading.Thread(
            target=self._serve, name="spotify-oauth-callback", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Authorization callback listener on {self.host}:{self.port}{self.callback_path}"
        )

    def _serve(self) -> None:
        assert self._server is not None
        deadline = time.monotonic() + self.timeout
        try:
            while not self._closing.is_set():
                if time.monotonic() >= deadline:
                    logger.info("Authorization callback listener timed out")
                    self.finish(False, "Timed out waiting for authorization")
                    break
                self._server.handle_request()
        finally:
            self._server.server_close()
            self._state = ListenerState.CLOSED
            self._notify_closed()

    def _notify_closed(self) -> None:
        if self._loop is None or self._closed is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._closed.set)
        except RuntimeError:
            # Event loop already closed; nobody is waiting
            pass

    def dispatch(self, code: str, state: str) -> None:
        """Run the callback coroutine on the event loop and wait for it.

        Called from the listener thread.
        """
        assert self._loop is not None
        future = asyncio.run_coroutine_threadsafe(self.on_callback(code, state), self._loop)
        future.result(timeout=EXCHANGE_TIMEOUT_SEC)

    def finish(self, success: bool, message: str) -> None:
        """Record the outcome and stop serving after the current request."""
        if self._outcome is None:
            self._outcome = CallbackOutcome(success=success, message=message)
        self._closing.set()

    def close(self) -> None:
        """Stop the listener and wait for its thread. Safe to call repeatedly."""
        if self._state == ListenerState.IDLE:
            self._state = ListenerState.CLOSED
            return
        self.finish(False, "Authorization attempt was superseded or cancelled")
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

    async def wait(self) -> CallbackOutcome:
        """Wait until the listener closes and return the outcome."""
        if self._closed is None:
            raise RuntimeError("Callback listener was never started")
        await self._closed.wait()
        return self._outcome or CallbackOutcome(False, "Listener closed")
