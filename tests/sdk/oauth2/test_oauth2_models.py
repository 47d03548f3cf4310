from missio.sdk.oauth2.models import (
    EXPIRY_MARGIN_MS,
    OAuth2ClientCredentialsAuth,
    OAuth2TokenData,
)


def test_token_without_expiry_never_expires() -> None:
    token = OAuth2TokenData(access_token="at", created_at=1_000)
    assert token.expires_at is None
    assert token.is_expired(10**15) is False


def test_token_expires_thirty_seconds_early() -> None:
    token = OAuth2TokenData(access_token="at", expires_in=3600, created_at=1_000_000)
    assert token.expires_at == 1_000_000 + 3_600_000

    cutoff = token.expires_at - EXPIRY_MARGIN_MS
    assert token.is_expired(cutoff) is False
    assert token.is_expired(cutoff + 1) is True


def test_token_ignores_unknown_response_fields() -> None:
    token = OAuth2TokenData.model_validate(
        {"access_token": "at", "token_type": "Bearer", "id_token": "x", "created_at": 5}
    )
    assert token.token_type == "Bearer"
    assert not hasattr(token, "id_token")


def test_auth_settings_default_and_camel_case() -> None:
    auth = OAuth2ClientCredentialsAuth.model_validate({"settings": None})
    assert auth.settings.auto_fetch_token is True
    assert auth.settings.auto_refresh_token is True

    auth = OAuth2ClientCredentialsAuth.model_validate(
        {
            "accessTokenUrl": "https://idp/token",
            "credentialsId": "ci",
            "credentials": {"clientId": "id", "clientSecret": "secret", "placement": "body"},
            "settings": {"autoFetchToken": False},
        }
    )
    assert auth.access_token_url == "https://idp/token"
    assert auth.credentials_id == "ci"
    assert auth.credentials is not None
    assert auth.credentials.placement == "body"
    assert auth.settings.auto_fetch_token is False
    assert auth.settings.auto_refresh_token is True
