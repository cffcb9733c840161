"""Local OAuth callback server and the authorization step of the login flow.

Starts a temporary loopback HTTP server to receive the redirect from the
Meta login dialog, opens the browser, and waits (up to a deadline) for the
authorization code.
"""

from __future__ import annotations

import asyncio
import errno
import html
import logging
import threading
import time
import webbrowser
from dataclasses import dataclass
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread
from typing import Callable
from urllib.parse import parse_qs, urlparse

from .client import CALLBACK_PATH, CALLBACK_PORT, build_authorization_url
from .errors import (
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    MissingCodeError,
    OAuthError,
    PortInUseError,
)

logger = logging.getLogger(__name__)

CALLBACK_HOST = "127.0.0.1"
AUTH_TIMEOUT_SECONDS = 300

_ADDR_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


@dataclass
class CallbackResult:
    """Result from OAuth callback."""

    code: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def success(self) -> bool:
        return self.code is not None and self.error is None


_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <style>
        body {{
            font-family: system-ui, -apple-system, 'Segoe UI', Roboto, sans-serif;
            padding: 40px;
            text-align: center;
        }}
        h1 {{ color: {color}; }}
        p {{ color: #555; }}
    </style>
</head>
<body>
    <h1>{heading}</h1>
    {detail}
    <p>You can close this window and return to the terminal.</p>
</body>
</html>
"""


def render_page(result: CallbackResult) -> tuple[int, str]:
    """Status code and HTML page shown in the browser for a callback result."""
    if result.error:
        detail = html.escape(result.error_description or result.error)
        return 400, _PAGE.format(
            title="Meta Ads CLI - Authentication Failed",
            color="#e53e3e",
            heading="Authentication Failed",
            detail=f"<p>{detail}</p>",
        )
    if not result.code:
        return 400, _PAGE.format(
            title="Meta Ads CLI - Authentication Failed",
            color="#e53e3e",
            heading="No Authorization Code",
            detail="",
        )
    return 200, _PAGE.format(
        title="Meta Ads CLI - Authentication Successful",
        color="#48bb78",
        heading="&#10003; Authentication Successful!",
        detail="",
    )


class _CallbackHTTPServer(HTTPServer):
    """HTTPServer holding the single result of one authorization attempt."""

    def __init__(self, address: tuple[str, int], callback_path: str):
        super().__init__(address, OAuthCallbackHandler)
        self.callback_path = callback_path
        self.result: CallbackResult | None = None
        self.completed = threading.Event()
        self._lock = threading.Lock()

    def complete(self, result: CallbackResult) -> bool:
        """Record the result if none has been recorded yet."""
        with self._lock:
            if self.result is not None:
                return False
            self.result = result
        self.completed.set()
        return True


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for OAuth callback."""

    server: _CallbackHTTPServer

    def log_message(self, format, *args):
        """Route request logs to the module logger."""
        logger.debug("callback server: " + format, *args)

    def do_GET(self):
        """Handle GET request (OAuth callback)."""
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            self.send_error(404)
            return

        params = parse_qs(parsed.query)
        result = CallbackResult(
            code=params.get("code", [None])[0],
            error=params.get("error", [None])[0],
            error_description=params.get("error_description", [None])[0],
        )
        if result.error:
            result.code = None

        status, page = render_page(result)
        body = page.encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

        if self.server.complete(result):
            logger.debug(
                "Callback received (%s)",
                "code" if result.success else f"error={result.error or 'no code'}",
            )


class OAuthCallbackServer:
    """Single-use loopback server for the OAuth redirect.

    Usage:
        with OAuthCallbackServer(port=3000) as server:
            result = await server.wait_for_callback_async(timeout=300)

    ``start`` raises PortInUseError when the port is taken; ``stop`` closes
    the listening socket so the port can be bound again immediately.
    """

    def __init__(
        self,
        port: int = CALLBACK_PORT,
        host: str = CALLBACK_HOST,
        callback_path: str = CALLBACK_PATH,
    ):
        self.port = port
        self.host = host
        self.callback_path = callback_path
        self._server: _CallbackHTTPServer | None = None
        self._thread: Thread | None = None

    @property
    def callback_url(self) -> str:
        return f"http://{self.host}:{self.port}{self.callback_path}"

    def start(self) -> int:
        """Bind the port and serve in a background thread.

        Returns:
            The port the server is listening on

        Raises:
            PortInUseError: If the port is already bound
            OAuthError: For any other bind failure
        """
        try:
            self._server = _CallbackHTTPServer((self.host, self.port), self.callback_path)
        except OSError as e:
            if e.errno in _ADDR_IN_USE:
                raise PortInUseError(self.port) from e
            raise OAuthError(
                f"Could not start callback server on port {self.port}: {e}",
                error_code="bind_failed",
            ) from e

        self._thread = Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.1},
            daemon=True,
        )
        self._thread.start()
        logger.debug("Callback server listening on %s", self.callback_url)

        return self.port

    def stop(self):
        """Stop the callback server and release the port."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            logger.debug("Callback server on port %s stopped", self.port)
        if self._thread:
            self._thread.join(timeout=1)
            self._thread = None

    async def wait_for_callback_async(
        self,
        timeout: float = AUTH_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = 0.1,
    ) -> CallbackResult:
        """Wait for the first callback or the deadline, whichever comes first.

        Raises:
            AuthorizationTimeoutError: If no callback arrives within timeout
        """
        if self._server is None:
            raise RuntimeError("Callback server is not running")

        start = clock()
        while True:
            if self._server.completed.is_set():
                return self._server.result
            if clock() - start >= timeout:
                raise AuthorizationTimeoutError(timeout)
            await asyncio.sleep(poll_interval)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()


def launch_browser(url: str) -> bool:
    """Open ``url`` in the default browser. Never raises."""
    try:
        opened = webbrowser.open(url)
    except Exception as e:
        logger.info("Could not open browser automatically: %s", e)
        return False

    if not opened:
        logger.info("No runnable browser found")
    return bool(opened)


class AttemptState(str, Enum):
    STARTING = "starting"
    AWAITING_REDIRECT = "awaiting_redirect"
    CAPTURED = "captured"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class AuthorizationAttempt:
    """One run of the browser authorization step.

    Binds the callback server, shows/opens the authorization URL, and waits
    for the redirect to race the deadline. The server is stopped on every
    exit path before ``run`` returns or raises.

    Args:
        client_id: Meta App ID
        port: Callback server port (must match the registered redirect)
        timeout: Seconds to wait for the redirect
        open_browser: Whether to try opening the default browser
        clock: Monotonic clock used for the deadline
        poll_interval: Seconds between checks for the callback
        on_url: Called with the authorization URL once the server is bound
        on_browser_failed: Called when the browser could not be opened
    """

    def __init__(
        self,
        client_id: str,
        port: int = CALLBACK_PORT,
        timeout: float = AUTH_TIMEOUT_SECONDS,
        open_browser: bool = True,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = 0.1,
        on_url: Callable[[str], None] | None = None,
        on_browser_failed: Callable[[], None] | None = None,
    ):
        self.client_id = client_id
        self.port = port
        self.timeout = timeout
        self.open_browser = open_browser
        self.clock = clock
        self.poll_interval = poll_interval
        self.on_url = on_url
        self.on_browser_failed = on_browser_failed

        self.state = AttemptState.STARTING
        self.failure: str | None = None

    async def run(self) -> str:
        """Resolve to the authorization code.

        Raises:
            PortInUseError: If the callback port is taken
            AuthorizationDeniedError: If Meta redirected back with an error
            MissingCodeError: If the redirect had neither code nor error
            AuthorizationTimeoutError: If no redirect arrived in time
        """
        server = OAuthCallbackServer(port=self.port)
        try:
            server.start()
        except OAuthError as e:
            self._fail(e.error_code)
            raise

        try:
            self.state = AttemptState.AWAITING_REDIRECT
            auth_url = build_authorization_url(self.client_id)
            if self.on_url:
                self.on_url(auth_url)

            # Console browsers can block until they exit
            if self.open_browser and not await asyncio.to_thread(launch_browser, auth_url):
                if self.on_browser_failed:
                    self.on_browser_failed()

            try:
                result = await server.wait_for_callback_async(
                    timeout=self.timeout,
                    clock=self.clock,
                    poll_interval=self.poll_interval,
                )
            except AuthorizationTimeoutError:
                self.state = AttemptState.TIMED_OUT
                logger.info("No OAuth redirect within %s seconds", self.timeout)
                raise
        finally:
            server.stop()

        if result.error:
            self._fail(result.error)
            raise AuthorizationDeniedError(result.error, result.error_description)
        if not result.code:
            self._fail("no code")
            raise MissingCodeError()

        self.state = AttemptState.CAPTURED
        return result.code

    def _fail(self, reason: str | None) -> None:
        self.state = AttemptState.FAILED
        self.failure = reason
        logger.info("Authorization attempt failed: %s", reason)


async def wait_for_authorization_code(client_id: str, **kwargs) -> str:
    """Run an AuthorizationAttempt and return the captured code."""
    return await AuthorizationAttempt(client_id, **kwargs).run()
