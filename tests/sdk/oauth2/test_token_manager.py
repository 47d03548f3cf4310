import asyncio

import pytest

from missio.sdk.oauth2.errors import OAuth2ConfigurationError, OAuth2ProviderError
from missio.sdk.oauth2.manager import (
    NO_ENVIRONMENT,
    TOKEN_INDEX_KEY,
    OAuth2TokenManager,
    token_storage_key,
)
from missio.sdk.oauth2.models import (
    OAuth2AuthorizationCodeAuth,
    OAuth2ClientCredentialsAuth,
    OAuth2PasswordAuth,
    OAuth2TokenData,
)
from missio.sdk.secrets.store import InMemorySecretStore

TOKEN_URL = "https://idp.example.com/token"
COLLECTION = "col-1"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class _FakeAuthorizationCodeFlow:
    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.runs: list[tuple[OAuth2AuthorizationCodeAuth, asyncio.Event | None]] = []

    async def run(self, auth, cancel_event=None) -> OAuth2TokenData:
        self.runs.append((auth, cancel_event))
        return OAuth2TokenData(
            access_token="code-at", expires_in=60, created_at=int(self.clock() * 1000)
        )


def _auth(**overrides) -> OAuth2ClientCredentialsAuth:
    data = {
        "accessTokenUrl": TOKEN_URL,
        "credentials": {"clientId": "cid", "clientSecret": "secret"},
    }
    data.update(overrides)
    return OAuth2ClientCredentialsAuth.model_validate(data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def code_flow(clock) -> _FakeAuthorizationCodeFlow:
    return _FakeAuthorizationCodeFlow(clock)


@pytest.fixture
def manager(store, clock, code_flow) -> OAuth2TokenManager:
    return OAuth2TokenManager(store, authorization_code_flow=code_flow, clock=clock)


def test_storage_key_layout() -> None:
    assert token_storage_key("c", None, TOKEN_URL) == f"missio:oauth2:c:_none_:{TOKEN_URL}:default"
    assert token_storage_key("c", "dev", TOKEN_URL, "ci") == f"missio:oauth2:c:dev:{TOKEN_URL}:ci"


@pytest.mark.asyncio
async def test_fetches_once_then_serves_stored_token(manager, token_server, store) -> None:
    token_server.respond(200, {"access_token": "at-1", "expires_in": 3600})

    assert await manager.get_token(_auth(), COLLECTION, "dev") == "at-1"
    assert await manager.get_token(_auth(), COLLECTION, "dev") == "at-1"

    assert token_server.grant_types == ["client_credentials"]
    stored = await store.get(token_storage_key(COLLECTION, "dev", TOKEN_URL))
    assert stored is not None
    assert OAuth2TokenData.model_validate_json(stored).access_token == "at-1"


@pytest.mark.asyncio
async def test_token_inside_expiry_margin_is_served_from_store(manager, token_server, clock) -> None:
    token_server.respond(200, {"access_token": "at-1", "expires_in": 60})
    await manager.get_token(_auth(), COLLECTION)

    clock.now += 29
    assert await manager.get_token(_auth(), COLLECTION) == "at-1"
    clock.now += 1
    assert await manager.get_token(_auth(), COLLECTION) == "at-1"

    assert len(token_server.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_fetches_keep_every_key_indexed(secret_store, token_server, clock) -> None:
    manager = OAuth2TokenManager(secret_store, clock=clock)
    envs = ["e1", "e2", "e3", "e4"]
    for name in envs:
        token_server.respond(200, {"access_token": name})

    await asyncio.gather(*(manager.get_token(_auth(), COLLECTION, env) for env in envs))

    assert await manager.clear_all_tokens(COLLECTION) == 4
    for env in envs:
        assert await secret_store.get(token_storage_key(COLLECTION, env, TOKEN_URL)) is None


@pytest.mark.asyncio
async def test_tokens_are_isolated_per_environment_and_credentials_id(manager, token_server) -> None:
    token_server.respond(200, {"access_token": "dev"})
    token_server.respond(200, {"access_token": "prod"})
    token_server.respond(200, {"access_token": "other-creds"})

    assert await manager.get_token(_auth(), COLLECTION, "dev") == "dev"
    assert await manager.get_token(_auth(), COLLECTION, "prod") == "prod"
    assert await manager.get_token(_auth(credentialsId="b"), COLLECTION, "dev") == "other-creds"
    assert await manager.get_token(_auth(), COLLECTION, "dev") == "dev"
    assert len(token_server.calls) == 3


@pytest.mark.asyncio
async def test_expired_token_is_refreshed(manager, token_server, clock, store) -> None:
    token_server.respond(200, {"access_token": "at-1", "expires_in": 60, "refresh_token": "rt-1"})
    token_server.respond(200, {"access_token": "at-2", "expires_in": 60})
    await manager.get_token(_auth(), COLLECTION)

    clock.now += 31
    assert await manager.get_token(_auth(), COLLECTION) == "at-2"

    assert token_server.grant_types == ["client_credentials", "refresh_token"]
    assert token_server.calls[1]["data"]["refresh_token"] == "rt-1"
    stored = OAuth2TokenData.model_validate_json(
        await store.get(token_storage_key(COLLECTION, None, TOKEN_URL))
    )
    # the refresh response carried no refresh_token, so the old one is kept
    assert stored.refresh_token == "rt-1"


@pytest.mark.asyncio
async def test_refresh_uses_refresh_token_url(manager, token_server, clock) -> None:
    auth = _auth(refreshTokenUrl="https://idp.example.com/refresh")
    token_server.respond(200, {"access_token": "at-1", "expires_in": 60, "refresh_token": "rt"})
    token_server.respond(200, {"access_token": "at-2", "expires_in": 60})
    await manager.get_token(auth, COLLECTION)

    clock.now += 120
    await manager.get_token(auth, COLLECTION)
    assert token_server.calls[1]["url"] == "https://idp.example.com/refresh"


@pytest.mark.asyncio
async def test_expired_token_without_refresh_token_is_refetched(manager, token_server, clock) -> None:
    token_server.respond(200, {"access_token": "at-1", "expires_in": 60})
    token_server.respond(200, {"access_token": "at-2", "expires_in": 60})
    await manager.get_token(_auth(), COLLECTION)

    clock.now += 31
    assert await manager.get_token(_auth(), COLLECTION) == "at-2"
    assert token_server.grant_types == ["client_credentials", "client_credentials"]


@pytest.mark.asyncio
async def test_failed_refresh_falls_back_to_fetch(manager, token_server, clock) -> None:
    token_server.respond(200, {"access_token": "at-1", "expires_in": 60, "refresh_token": "rt"})
    token_server.respond(400, {"error": "invalid_grant"})
    token_server.respond(200, {"access_token": "at-2"})
    await manager.get_token(_auth(), COLLECTION)

    clock.now += 3600
    assert await manager.get_token(_auth(), COLLECTION) == "at-2"
    assert token_server.grant_types == ["client_credentials", "refresh_token", "client_credentials"]


@pytest.mark.asyncio
async def test_auto_refresh_disabled_refetches(manager, token_server, clock) -> None:
    auth = _auth(settings={"autoRefreshToken": False})
    token_server.respond(200, {"access_token": "at-1", "expires_in": 60, "refresh_token": "rt"})
    token_server.respond(200, {"access_token": "at-2"})
    await manager.get_token(auth, COLLECTION)

    clock.now += 3600
    assert await manager.get_token(auth, COLLECTION) == "at-2"
    assert token_server.grant_types == ["client_credentials", "client_credentials"]


@pytest.mark.asyncio
async def test_auto_fetch_disabled_returns_none(manager, token_server, clock, store) -> None:
    auth = _auth(settings={"autoFetchToken": False})
    assert await manager.get_token(auth, COLLECTION) is None
    assert token_server.calls == []

    key = token_storage_key(COLLECTION, None, TOKEN_URL)
    await store.store(
        key,
        OAuth2TokenData(access_token="old", expires_in=60, created_at=int(clock() * 1000)).model_dump_json(),
    )
    assert await manager.get_token(auth, COLLECTION) == "old"

    clock.now += 3600
    assert await manager.get_token(auth, COLLECTION) is None
    assert await store.get(key) is None


@pytest.mark.asyncio
async def test_fetch_errors_propagate(manager, token_server) -> None:
    token_server.respond(401, {"error": "invalid_client"})
    with pytest.raises(OAuth2ProviderError):
        await manager.get_token(_auth(), COLLECTION)
    status = await manager.get_token_status(_auth(), COLLECTION)
    assert status.has_token is False


@pytest.mark.asyncio
async def test_missing_client_id_fails_before_network(manager, token_server) -> None:
    with pytest.raises(OAuth2ConfigurationError, match="clientId"):
        await manager.get_token(_auth(credentials=None), COLLECTION)

    password = OAuth2PasswordAuth.model_validate(
        {"accessTokenUrl": TOKEN_URL, "resourceOwner": {"username": "u", "password": "p"}}
    )
    with pytest.raises(OAuth2ConfigurationError, match="clientId"):
        await manager.get_token(password, COLLECTION)

    assert token_server.calls == []


@pytest.mark.asyncio
async def test_password_flow_requires_resource_owner(manager, token_server) -> None:
    auth = OAuth2PasswordAuth.model_validate(
        {
            "accessTokenUrl": TOKEN_URL,
            "credentials": {"clientId": "cid"},
            "resourceOwner": {"username": "alice"},
        }
    )
    with pytest.raises(OAuth2ConfigurationError, match="resourceOwner"):
        await manager.get_token(auth, COLLECTION)
    assert token_server.calls == []


@pytest.mark.asyncio
async def test_password_flow_fetches(manager, token_server) -> None:
    auth = OAuth2PasswordAuth.model_validate(
        {
            "accessTokenUrl": TOKEN_URL,
            "credentials": {"clientId": "cid"},
            "resourceOwner": {"username": "alice", "password": "pw"},
        }
    )
    token_server.respond(200, {"access_token": "pw-at"})
    assert await manager.get_token(auth, COLLECTION) == "pw-at"
    assert token_server.calls[0]["data"]["username"] == "alice"


@pytest.mark.asyncio
async def test_missing_access_token_url(manager, token_server) -> None:
    with pytest.raises(OAuth2ConfigurationError, match="accessTokenUrl"):
        await manager.get_token(_auth(accessTokenUrl=None), COLLECTION)
    with pytest.raises(OAuth2ConfigurationError):
        await manager.get_token_status(_auth(accessTokenUrl=""), COLLECTION)


@pytest.mark.asyncio
async def test_authorization_code_flow_is_delegated(manager, code_flow, token_server) -> None:
    auth = OAuth2AuthorizationCodeAuth.model_validate(
        {
            "accessTokenUrl": TOKEN_URL,
            "authorizationUrl": "https://idp.example.com/authorize",
            "credentials": {"clientId": "cid"},
        }
    )
    cancel = asyncio.Event()

    assert await manager.get_token(auth, COLLECTION, cancel_event=cancel) == "code-at"
    assert await manager.get_token(auth, COLLECTION) == "code-at"
    assert len(code_flow.runs) == 1
    assert code_flow.runs[0][1] is cancel
    assert token_server.calls == []


@pytest.mark.asyncio
async def test_authorization_code_requires_authorization_url(manager, code_flow) -> None:
    auth = OAuth2AuthorizationCodeAuth.model_validate(
        {"accessTokenUrl": TOKEN_URL, "credentials": {"clientId": "cid"}}
    )
    with pytest.raises(OAuth2ConfigurationError, match="authorizationUrl"):
        await manager.get_token(auth, COLLECTION)
    assert code_flow.runs == []


@pytest.mark.asyncio
async def test_token_status(manager, token_server, clock) -> None:
    status = await manager.get_token_status(_auth(), COLLECTION)
    assert status.has_token is False
    assert status.expires_at is None

    token_server.respond(200, {"access_token": "at", "expires_in": 100})
    await manager.get_token(_auth(), COLLECTION)

    now_ms = int(clock() * 1000)
    status = await manager.get_token_status(_auth(), COLLECTION)
    assert status.has_token is True
    assert status.expires_at == now_ms + 100_000
    assert status.is_expired is False
    assert status.time_remaining == 100_000

    clock.now += 200
    status = await manager.get_token_status(_auth(), COLLECTION)
    assert status.is_expired is True
    assert status.time_remaining == 0
    assert len(token_server.calls) == 1


@pytest.mark.asyncio
async def test_token_status_without_expiry(manager, token_server) -> None:
    token_server.respond(200, {"access_token": "at"})
    await manager.get_token(_auth(), COLLECTION)

    status = await manager.get_token_status(_auth(), COLLECTION)
    assert status.has_token is True
    assert status.expires_at is None
    assert status.is_expired is False
    assert status.time_remaining is None


@pytest.mark.asyncio
async def test_clear_token_forces_refetch(manager, token_server) -> None:
    token_server.respond(200, {"access_token": "at-1"})
    token_server.respond(200, {"access_token": "at-2"})
    await manager.get_token(_auth(), COLLECTION)

    await manager.clear_token(_auth(), COLLECTION)
    assert (await manager.get_token_status(_auth(), COLLECTION)).has_token is False
    assert await manager.get_token(_auth(), COLLECTION) == "at-2"


@pytest.mark.asyncio
async def test_clear_all_tokens_by_scope(manager, token_server, store) -> None:
    for name in ("a", "b", "c"):
        token_server.respond(200, {"access_token": name})
    await manager.get_token(_auth(), "one", "dev")
    await manager.get_token(_auth(), "one", "prod")
    await manager.get_token(_auth(), "two", "dev")

    assert await manager.clear_all_tokens("one", "dev") == 1
    assert (await manager.get_token_status(_auth(), "one", "dev")).has_token is False
    assert (await manager.get_token_status(_auth(), "one", "prod")).has_token is True

    assert await manager.clear_all_tokens("one") == 1
    assert await manager.clear_all_tokens() == 1
    assert await manager.clear_all_tokens() == 0
    assert store.keys() == [TOKEN_INDEX_KEY]


@pytest.mark.asyncio
async def test_clear_all_tokens_without_environment(manager, token_server) -> None:
    token_server.respond(200, {"access_token": "no-env"})
    token_server.respond(200, {"access_token": "dev"})
    await manager.get_token(_auth(), COLLECTION)
    await manager.get_token(_auth(), COLLECTION, "dev")

    assert await manager.clear_all_tokens(COLLECTION, NO_ENVIRONMENT) == 1
    assert (await manager.get_token_status(_auth(), COLLECTION)).has_token is False
    assert (await manager.get_token_status(_auth(), COLLECTION, "dev")).has_token is True


@pytest.mark.asyncio
async def test_token_status_leaves_unreadable_record_in_place(manager, store) -> None:
    key = token_storage_key(COLLECTION, None, TOKEN_URL)
    await store.store(key, "not json")

    assert (await manager.get_token_status(_auth(), COLLECTION)).has_token is False
    assert await store.get(key) == "not json"


@pytest.mark.asyncio
async def test_unreadable_stored_token_is_discarded(manager, token_server, store) -> None:
    key = token_storage_key(COLLECTION, None, TOKEN_URL)
    await store.store(key, "not json")
    token_server.respond(200, {"access_token": "fresh"})

    assert await manager.get_token(_auth(), COLLECTION) == "fresh"
    assert OAuth2TokenData.model_validate_json(await store.get(key)).access_token == "fresh"
