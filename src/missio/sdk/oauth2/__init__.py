"""OAuth2 token acquisition for collection requests.

``missio.sdk.oauth2.request_auth`` depends on the variables package and is
imported directly rather than re-exported here.
"""

from missio.sdk.oauth2.errors import (
    OAuth2AuthorizationDeniedError,
    OAuth2CancelledError,
    OAuth2ConfigurationError,
    OAuth2Error,
    OAuth2ProviderError,
    OAuth2RequestError,
    OAuth2StateMismatchError,
    OAuth2TimeoutError,
)
from missio.sdk.oauth2.models import OAuth2TokenData, TokenStatus

__all__ = [
    "OAuth2AuthorizationDeniedError",
    "OAuth2CancelledError",
    "OAuth2ConfigurationError",
    "OAuth2Error",
    "OAuth2ProviderError",
    "OAuth2RequestError",
    "OAuth2StateMismatchError",
    "OAuth2TimeoutError",
    "OAuth2TokenData",
    "TokenStatus",
]
