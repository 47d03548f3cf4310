from typing import Any

import pytest

from missio.sdk.oauth2 import token_endpoint as token_endpoint_module


class _FakeResponse:
    def __init__(self, status_code: int, payload: object, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> object:
        return self._payload


class _FakeResponseJsonError(_FakeResponse):
    def json(self) -> dict[str, object]:
        raise ValueError("invalid json")


class _FakeTokenServer:
    """Records token endpoint POSTs and answers them from a queue."""

    def __init__(self) -> None:
        self.responses: list[_FakeResponse | Exception] = []
        self.calls: list[dict[str, Any]] = []
        self.timeouts: list[float] = []

    def respond(self, status_code: int, payload: object, text: str = "") -> None:
        self.responses.append(_FakeResponse(status_code, payload, text))

    def respond_not_json(self, status_code: int, text: str) -> None:
        self.responses.append(_FakeResponseJsonError(status_code, None, text))

    def fail(self, exc: Exception) -> None:
        self.responses.append(exc)

    @property
    def grant_types(self) -> list[str]:
        return [call["data"].get("grant_type") for call in self.calls]

    def client(self, timeout: float = 15.0) -> "_FakeClient":
        self.timeouts.append(timeout)
        return _FakeClient(self)


class _FakeClient:
    def __init__(self, server: _FakeTokenServer) -> None:
        self._server = server

    async def __aenter__(self) -> "_FakeClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: Any,
    ) -> bool:
        return False

    async def post(self, url: str, *, data: dict[str, str], headers: dict[str, str]) -> _FakeResponse:
        self._server.calls.append({"url": url, "data": dict(data), "headers": dict(headers)})
        if not self._server.responses:
            raise AssertionError(f"Unexpected token request to {url}")
        response = self._server.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def token_server(monkeypatch: pytest.MonkeyPatch) -> _FakeTokenServer:
    server = _FakeTokenServer()
    monkeypatch.setattr(token_endpoint_module, "create_http_client", server.client)
    return server
