"""
Loopback HTTP listener for the authorization code flow.

The listener binds ``127.0.0.1`` on an OS-assigned port before uvicorn starts,
so the redirect URI is known up front. It accepts exactly one callback: the
first request to ``/`` settles the outcome and every later request gets a 404.
The browser always receives a small HTML page, whatever the outcome.

Usage::

    async with LoopbackCallbackServer(expected_state=state) as server:
        open_browser(build_url(redirect_uri=server.redirect_uri))
        code = await server.wait_for_callback(timeout=120)
"""

from __future__ import annotations

import asyncio
import html
import logging
import socket
from types import TracebackType
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from missio.sdk.oauth2.errors import (
    OAuth2AuthorizationDeniedError,
    OAuth2CancelledError,
    OAuth2Error,
    OAuth2StateMismatchError,
    OAuth2TimeoutError,
)

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
_STARTUP_TIMEOUT = 5.0
_SHUTDOWN_TIMEOUT = 5.0

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="font-family: sans-serif; text-align: center; margin-top: 15%;">
<h2>{title}</h2>
<p>{message}</p>
</body>
</html>
"""


def render_page(title: str, message: str) -> str:
    return _PAGE_TEMPLATE.format(title=html.escape(title), message=html.escape(message))


class LoopbackCallbackServer:
    """Scoped one-shot callback listener.

    Entering the context binds the socket and starts serving; leaving it shuts
    the server down and closes the socket exactly once, on every exit path.
    """

    def __init__(self, expected_state: str, host: str = LOOPBACK_HOST) -> None:
        self.expected_state = expected_state
        self.host = host
        self.port: int | None = None
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None
        self._result: asyncio.Future[str] | None = None
        self._closed = False

    @property
    def redirect_uri(self) -> str:
        if self.port is None:
            raise RuntimeError("Loopback server is not running")
        return f"http://{self.host}:{self.port}"

    async def __aenter__(self) -> LoopbackCallbackServer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._result = loop.create_future()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((self.host, 0))
            sock.listen()
        except Exception:
            sock.close()
            raise
        self._socket = sock
        self.port = sock.getsockname()[1]

        app = Starlette(routes=[Route("/", self._handle_callback, methods=["GET"])])
        config = uvicorn.Config(
            app=app,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._task = loop.create_task(self._server.serve(sockets=[sock]))

        try:
            await self._wait_started()
        except BaseException:
            await self.close()
            raise
        logger.debug("OAuth2 callback listener started on %s", self.redirect_uri)

    async def _wait_started(self) -> None:
        assert self._server is not None and self._task is not None
        deadline = asyncio.get_running_loop().time() + _STARTUP_TIMEOUT
        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise OAuth2Error("OAuth2 callback listener exited during startup")
            if asyncio.get_running_loop().time() > deadline:
                raise OAuth2Error("OAuth2 callback listener did not start in time")
            await asyncio.sleep(0.01)

    async def wait_for_callback(
        self, timeout: float, cancel_event: asyncio.Event | None = None
    ) -> str:
        """Wait for the authorization callback and return the code.

        Raises:
            OAuth2AuthorizationDeniedError: If the callback carried an ``error``
            OAuth2StateMismatchError: If the callback ``state`` did not match
            OAuth2TimeoutError: If nothing arrived within ``timeout`` seconds
            OAuth2CancelledError: If ``cancel_event`` was set first
        """
        if self._result is None:
            raise RuntimeError("Loopback server is not running")

        cancel_task = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None
        waiters: list[asyncio.Future[Any]] = [self._result]
        if cancel_task is not None:
            waiters.append(cancel_task)
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if cancel_task is not None and not cancel_task.done():
                cancel_task.cancel()

        if self._result in done:
            return self._result.result()
        if cancel_task is not None and cancel_task in done:
            raise OAuth2CancelledError("OAuth2 authorization was cancelled")
        raise OAuth2TimeoutError(
            f"Timed out after {timeout:g}s waiting for the OAuth2 authorization callback"
        )

    async def _handle_callback(self, request: Request) -> Response:
        assert self._result is not None
        if self._result.done():
            return HTMLResponse(
                render_page("Request already handled", "You can close this window."),
                status_code=404,
            )

        params = request.query_params
        error = params.get("error")
        if error:
            description = params.get("error_description")
            self._result.set_exception(OAuth2AuthorizationDeniedError(error, description))
            return HTMLResponse(
                render_page("Authorization failed", description or error)
            )

        code = params.get("code")
        if not code:
            self._result.set_exception(
                OAuth2Error("Authorization callback did not include an authorization code")
            )
            return HTMLResponse(
                render_page("Authorization failed", "No authorization code was received.")
            )

        if params.get("state") != self.expected_state:
            self._result.set_exception(
                OAuth2StateMismatchError("Authorization callback state did not match the request")
            )
            return HTMLResponse(
                render_page("Authorization failed", "The authorization state did not match.")
            )

        self._result.set_result(code)
        return HTMLResponse(
            render_page(
                "Authorization complete", "You can close this window and return to Missio."
            )
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=_SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Timeout waiting for OAuth2 callback listener shutdown")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
        if self._socket is not None:
            self._socket.close()
            self._socket = None

        if self._result is not None:
            if not self._result.done():
                self._result.cancel()
            elif not self._result.cancelled():
                # Mark a stored exception as retrieved.
                self._result.exception()
        logger.debug("OAuth2 callback listener stopped")


__all__ = ["LOOPBACK_HOST", "LoopbackCallbackServer", "render_page"]
