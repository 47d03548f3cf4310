import asyncio

import httpx
import pytest

from missio.sdk.oauth2.errors import (
    OAuth2AuthorizationDeniedError,
    OAuth2CancelledError,
    OAuth2Error,
    OAuth2StateMismatchError,
    OAuth2TimeoutError,
)
from missio.sdk.oauth2.loopback import LoopbackCallbackServer, render_page

STATE = "expected-state"


async def _callback(server: LoopbackCallbackServer, **params: str) -> httpx.Response:
    async with httpx.AsyncClient(timeout=5) as client:
        return await client.get(server.redirect_uri, params=params)


@pytest.mark.asyncio
async def test_successful_callback_returns_code() -> None:
    async with LoopbackCallbackServer(expected_state=STATE) as server:
        assert server.redirect_uri.startswith("http://127.0.0.1:")
        assert server.port

        resp = await _callback(server, code="the-code", state=STATE)
        assert resp.status_code == 200
        assert "Authorization complete" in resp.text

        assert await server.wait_for_callback(timeout=5) == "the-code"

        second = await _callback(server, code="again", state=STATE)
        assert second.status_code == 404


@pytest.mark.asyncio
async def test_state_mismatch_is_rejected() -> None:
    async with LoopbackCallbackServer(expected_state=STATE) as server:
        resp = await _callback(server, code="the-code", state="forged")
        assert resp.status_code == 200
        assert "did not match" in resp.text

        with pytest.raises(OAuth2StateMismatchError):
            await server.wait_for_callback(timeout=5)


@pytest.mark.asyncio
async def test_error_callback_is_a_denial() -> None:
    async with LoopbackCallbackServer(expected_state=STATE) as server:
        resp = await _callback(
            server, error="access_denied", error_description="User said no", state=STATE
        )
        assert "User said no" in resp.text

        with pytest.raises(OAuth2AuthorizationDeniedError) as exc_info:
            await server.wait_for_callback(timeout=5)
        assert exc_info.value.error == "access_denied"


@pytest.mark.asyncio
async def test_callback_without_code() -> None:
    async with LoopbackCallbackServer(expected_state=STATE) as server:
        await _callback(server, state=STATE)
        with pytest.raises(OAuth2Error, match="authorization code"):
            await server.wait_for_callback(timeout=5)


@pytest.mark.asyncio
async def test_wait_times_out() -> None:
    async with LoopbackCallbackServer(expected_state=STATE) as server:
        with pytest.raises(OAuth2TimeoutError):
            await server.wait_for_callback(timeout=0.05)


@pytest.mark.asyncio
async def test_wait_can_be_cancelled() -> None:
    cancel = asyncio.Event()
    async with LoopbackCallbackServer(expected_state=STATE) as server:
        asyncio.get_running_loop().call_later(0.05, cancel.set)
        with pytest.raises(OAuth2CancelledError):
            await server.wait_for_callback(timeout=5, cancel_event=cancel)


@pytest.mark.asyncio
async def test_close_is_idempotent_and_releases_port() -> None:
    server = LoopbackCallbackServer(expected_state=STATE)
    await server.start()
    redirect_uri = server.redirect_uri

    await server.close()
    await server.close()

    with pytest.raises(httpx.TransportError):
        async with httpx.AsyncClient(timeout=2) as client:
            await client.get(redirect_uri)


def test_redirect_uri_requires_running_server() -> None:
    with pytest.raises(RuntimeError):
        LoopbackCallbackServer(expected_state=STATE).redirect_uri


def test_render_page_escapes_html() -> None:
    page = render_page("Title", "<script>alert(1)</script>")
    assert "<script>" not in page
    assert "&lt;script&gt;" in page
