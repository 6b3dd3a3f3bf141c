"""
Loopback HTTP listener for the OAuth authorization callback.

The listener runs on a background thread and hands the single callback it
cares about to the waiting caller through a CallbackChannel. Anything that
provides ``redirect_uri``, ``start(deliver)`` and ``close()`` can stand in
for LocalCallbackListener, which keeps the waiting logic testable without
opening sockets.
"""

from __future__ import annotations

import html
import logging
import queue
import threading
import wsgiref.simple_server
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import parse_qs

# Path Google redirects the browser to after consent
CALLBACK_PATH = "/callback"

SUCCESS_PAGE = (
    "<html><body><h1>Authorization Successful!</h1>"
    "<p>You can close this window and return to the terminal.</p></body></html>"
)

FAILURE_PAGE = (
    "<html><body><h1>Authorization Failed</h1><p>{error}</p>"
    "<p>You can close this window.</p></body></html>"
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallbackResult:
    """
    Outcome of one authorization callback.

    Exactly one of code or error is set.
    """

    code: str | None = None
    error: str | None = None
    state: str | None = None


class CallbackListener(Protocol):
    """Ephemeral listener that receives the authorization redirect."""

    @property
    def redirect_uri(self) -> str: ...

    def start(self, deliver: Callable[[CallbackResult], None]) -> None: ...

    def close(self) -> None: ...


class CallbackChannel:
    """
    Single-slot hand-off between the listener thread and the waiting caller.

    Only the first delivered result is kept; later callbacks are dropped.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[CallbackResult] = queue.Queue(maxsize=1)

    def deliver(self, result: CallbackResult) -> None:
        try:
            self._queue.put_nowait(result)
        except queue.Full:
            logger.debug("Ignoring additional authorization callback")

    def get(self, timeout: float) -> CallbackResult | None:
        """Wait up to timeout seconds for a result; None if nothing arrived."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class _QuietRequestHandler(wsgiref.simple_server.WSGIRequestHandler):
    """Route the request log to the module logger instead of stderr."""

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("Callback server: " + format % args)


def _first(params: dict[str, list[str]], key: str) -> str | None:
    values = params.get(key)
    return values[0] if values else None


class LocalCallbackListener:
    """
    WSGI server bound to an ephemeral localhost port.

    The socket is bound when the listener is created so the redirect URI is
    known before the authorization URL is built.

    Usage:
        listener = LocalCallbackListener()
        listener.start(channel.deliver)
        try:
            ...  # send the user to a URL redirecting to listener.redirect_uri
        finally:
            listener.close()
    """

    def __init__(self, host: str = "localhost", port: int = 0, path: str = CALLBACK_PATH):
        self.host = host
        self.path = path
        self._deliver: Callable[[CallbackResult], None] | None = None
        self._thread: threading.Thread | None = None
        self._server = wsgiref.simple_server.make_server(
            host, port, self._app, handler_class=_QuietRequestHandler
        )

    @property
    def port(self) -> int:
        return int(self._server.server_port)

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    def start(self, deliver: Callable[[CallbackResult], None]) -> None:
        self._deliver = deliver
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name="oauth-callback",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Listening for authorization callback on {self.redirect_uri}")

    def close(self) -> None:
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join(timeout=5)
            self._thread = None
        self._server.server_close()
        logger.debug("Authorization callback listener closed")

    def _app(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        if environ.get("PATH_INFO") != self.path:
            start_response("404 Not Found", [("Content-Type", "text/plain")])
            return [b"Not found"]

        params = parse_qs(environ.get("QUERY_STRING", ""))
        code = _first(params, "code")
        state = _first(params, "state")
        error = _first(params, "error")

        if not code and not error:
            # Stray or prefetch request; keep waiting for the real redirect
            start_response("400 Bad Request", [("Content-Type", "text/plain")])
            return [b"Missing authorization code"]

        if code:
            result = CallbackResult(code=code, state=state)
            page = SUCCESS_PAGE
        else:
            result = CallbackResult(error=error, state=state)
            page = FAILURE_PAGE.format(error=html.escape(error))

        if self._deliver is not None:
            self._deliver(result)

        start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
        return [page.encode("utf-8")]
