"""OAuth2 error types."""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base class for OAuth2 token acquisition failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OAuth2ConfigurationError(OAuth2Error):
    """The auth block is missing a required field or names an unsupported flow."""


class OAuth2ProviderError(OAuth2Error):
    """The token endpoint or authorization server returned an OAuth error."""

    def __init__(
        self, error: str, description: str | None = None, *, status_code: int | None = None
    ) -> None:
        message = f"{error}: {description}" if description else error
        super().__init__(message, status_code=status_code)
        self.error = error
        self.description = description


class OAuth2AuthorizationDeniedError(OAuth2ProviderError):
    """The user or the authorization server denied the authorization request."""


class OAuth2StateMismatchError(OAuth2Error):
    """The callback ``state`` did not match the one sent with the request."""


class OAuth2TimeoutError(OAuth2Error):
    """The token endpoint or the authorization callback did not answer in time."""


class OAuth2CancelledError(OAuth2Error):
    """The authorization flow was cancelled by the caller."""


class OAuth2RequestError(OAuth2Error):
    """The token endpoint could not be reached."""


__all__ = [
    "OAuth2AuthorizationDeniedError",
    "OAuth2CancelledError",
    "OAuth2ConfigurationError",
    "OAuth2Error",
    "OAuth2ProviderError",
    "OAuth2RequestError",
    "OAuth2StateMismatchError",
    "OAuth2TimeoutError",
]
