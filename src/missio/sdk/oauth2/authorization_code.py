"""Authorization code flow with PKCE over a loopback redirect."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import click
import httpx

from missio.sdk.oauth2.errors import OAuth2ConfigurationError
from missio.sdk.oauth2.loopback import LOOPBACK_HOST, LoopbackCallbackServer
from missio.sdk.oauth2.models import OAuth2AuthorizationCodeAuth, OAuth2TokenData
from missio.sdk.oauth2.pkce import code_challenge_s256, generate_code_verifier, generate_state
from missio.sdk.oauth2.token_endpoint import TokenEndpointClient

logger = logging.getLogger(__name__)

AUTHORIZATION_TIMEOUT_SECONDS = 120.0


def build_authorization_url(
    auth: OAuth2AuthorizationCodeAuth,
    redirect_uri: str,
    state: str,
    code_challenge: str | None = None,
) -> str:
    """Append the authorization request parameters to ``authorization_url``."""
    if not auth.authorization_url:
        raise OAuth2ConfigurationError("OAuth2 authorization_code flow requires authorizationUrl")
    params: dict[str, str] = {
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "state": state,
    }
    if auth.credentials is not None and auth.credentials.client_id:
        params["client_id"] = auth.credentials.client_id
    if auth.scope:
        params["scope"] = auth.scope
    if code_challenge:
        params["code_challenge"] = code_challenge
        params["code_challenge_method"] = "S256"
    return str(httpx.URL(auth.authorization_url).copy_merge_params(params))


class AuthorizationCodeFlow:
    """Runs one browser round-trip and exchanges the returned code for a token."""

    def __init__(
        self,
        token_endpoint: TokenEndpointClient,
        open_browser: Callable[[str], Any] = click.launch,
        timeout: float = AUTHORIZATION_TIMEOUT_SECONDS,
        host: str = LOOPBACK_HOST,
    ) -> None:
        self._token_endpoint = token_endpoint
        self._open_browser = open_browser
        self.timeout = timeout
        self.host = host

    async def run(
        self,
        auth: OAuth2AuthorizationCodeAuth,
        cancel_event: asyncio.Event | None = None,
    ) -> OAuth2TokenData:
        state = generate_state()
        code_verifier = generate_code_verifier() if auth.pkce.enabled else None
        code_challenge = code_challenge_s256(code_verifier) if code_verifier else None

        async with LoopbackCallbackServer(expected_state=state, host=self.host) as server:
            redirect_uri = server.redirect_uri
            url = build_authorization_url(auth, redirect_uri, state, code_challenge)
            logger.info("Opening browser for OAuth2 authorization", extra={"redirect_uri": redirect_uri})
            self._open_browser(url)
            code = await server.wait_for_callback(self.timeout, cancel_event)

        return await self._token_endpoint.exchange_code(auth, code, redirect_uri, code_verifier)


__all__ = ["AUTHORIZATION_TIMEOUT_SECONDS", "AuthorizationCodeFlow", "build_authorization_url"]
