"""Token endpoint client.

All grants are POSTed as ``application/x-www-form-urlencoded`` with
``Accept: application/json``. Client credentials travel either in an HTTP
Basic header or as ``client_id``/``client_secret`` form fields.
"""

from __future__ import annotations

import base64
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from missio.sdk.http import DEFAULT_TIMEOUT, create_http_client
from missio.sdk.oauth2.errors import (
    OAuth2ConfigurationError,
    OAuth2Error,
    OAuth2ProviderError,
    OAuth2RequestError,
    OAuth2TimeoutError,
)
from missio.sdk.oauth2.models import (
    OAuth2AuthorizationCodeAuth,
    OAuth2ClientCredentialsAuth,
    OAuth2Credentials,
    OAuth2PasswordAuth,
    OAuth2TokenData,
)

logger = logging.getLogger(__name__)

_BODY_PREVIEW_CHARS = 200


def basic_auth_header(client_id: str, client_secret: str | None) -> str:
    raw = f"{client_id}:{client_secret or ''}".encode()
    return "Basic " + base64.b64encode(raw).decode("ascii")


class TokenEndpointClient:
    """Issues grant requests and normalizes the responses into OAuth2TokenData."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.timeout = timeout
        self._clock = clock

    async def fetch_client_credentials(self, auth: OAuth2ClientCredentialsAuth) -> OAuth2TokenData:
        form = {"grant_type": "client_credentials"}
        if auth.scope:
            form["scope"] = auth.scope
        return await self.request_token(
            _require_url(auth.access_token_url), form, auth.credentials, context="client_credentials"
        )

    async def fetch_password(
        self, auth: OAuth2PasswordAuth, username: str, password: str
    ) -> OAuth2TokenData:
        form = {"grant_type": "password", "username": username, "password": password}
        if auth.scope:
            form["scope"] = auth.scope
        return await self.request_token(
            _require_url(auth.access_token_url), form, auth.credentials, context="password"
        )

    async def exchange_code(
        self,
        auth: OAuth2AuthorizationCodeAuth,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuth2TokenData:
        form = {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri}
        if code_verifier:
            form["code_verifier"] = code_verifier
        return await self.request_token(
            _require_url(auth.access_token_url), form, auth.credentials, context="authorization_code"
        )

    async def refresh(
        self,
        token_url: str,
        refresh_token: str,
        credentials: OAuth2Credentials | None,
        scope: str | None = None,
    ) -> OAuth2TokenData:
        form = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        if scope:
            form["scope"] = scope
        return await self.request_token(token_url, form, credentials, context="refresh_token")

    async def request_token(
        self,
        url: str,
        form: Mapping[str, str],
        credentials: OAuth2Credentials | None,
        *,
        context: str,
    ) -> OAuth2TokenData:
        data = dict(form)
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        if credentials is not None and credentials.client_id:
            if credentials.placement == "body":
                data["client_id"] = credentials.client_id
                if credentials.client_secret:
                    data["client_secret"] = credentials.client_secret
            else:
                headers["Authorization"] = basic_auth_header(
                    credentials.client_id, credentials.client_secret
                )

        try:
            async with create_http_client(self.timeout) as client:
                resp = await client.post(url, data=data, headers=headers)
        except httpx.TimeoutException as exc:
            raise OAuth2TimeoutError(
                f"Token request to {url} timed out after {self.timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise OAuth2RequestError(f"Token request to {url} failed: {exc}") from exc

        return self._parse_token_response(resp, url=url, context=context)

    def _parse_token_response(self, resp: httpx.Response, *, url: str, context: str) -> OAuth2TokenData:
        try:
            payload: Any = resp.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            logger.warning(
                "Token endpoint returned a non-JSON response",
                extra={"endpoint": url, "context": context, "status_code": resp.status_code},
            )
            raise OAuth2Error(
                f"Token endpoint returned HTTP {resp.status_code}: "
                f"{resp.text[:_BODY_PREVIEW_CHARS]}",
                status_code=resp.status_code,
            )

        error = payload.get("error")
        if error:
            logger.warning(
                "Token endpoint returned OAuth error",
                extra={
                    "endpoint": url,
                    "context": context,
                    "status_code": resp.status_code,
                    "provider_error": error,
                },
            )
            description = payload.get("error_description")
            raise OAuth2ProviderError(
                str(error),
                str(description) if description else None,
                status_code=resp.status_code,
            )

        if resp.status_code >= 400 or not payload.get("access_token"):
            logger.warning(
                "Token endpoint response did not include an access token",
                extra={"endpoint": url, "context": context, "status_code": resp.status_code},
            )
            raise OAuth2Error(
                f"Token endpoint returned HTTP {resp.status_code} without an access_token: "
                f"{resp.text[:_BODY_PREVIEW_CHARS]}",
                status_code=resp.status_code,
            )

        try:
            return OAuth2TokenData.model_validate(
                {**payload, "created_at": int(self._clock() * 1000)}
            )
        except ValidationError as exc:
            raise OAuth2Error(
                "Invalid token response payload", status_code=resp.status_code
            ) from exc


def _require_url(url: str | None) -> str:
    if not url:
        raise OAuth2ConfigurationError("OAuth2 access token URL is required")
    return url


__all__ = ["TokenEndpointClient", "basic_auth_header"]
