"""Unit tests for wxsuite.client (token-guarded requests)."""
import asyncio
import time

import pytest

from wxsuite.client import BaseClient
from wxsuite.errors import MethodCollisionError, RemoteAPIError, TokenRefreshError, TransportError
from wxsuite.store import MemoryTokenStore
from wxsuite.suite import SuiteClient
from wxsuite.token import SuiteAccessToken
from wxsuite.transport import HttpResponse

ISSUE = "service/get_suite_token"
ENDPOINT = "service/get_pre_auth_code"
ENDPOINT_URL = "https://qyapi.weixin.qq.com/cgi-bin/" + ENDPOINT


class RecordingStore(MemoryTokenStore):
    def __init__(self, token=None):
        super().__init__()
        self._token = token
        self.saved = []

    async def save(self, token):
        self.saved.append(token)
        await super().save(token)


def _issued(token="T1", expires_in=7200):
    return {"errcode": 0, "errmsg": "ok", "suite_access_token": token, "expires_in": expires_in}


def _client(transport, store=None, **kwargs):
    return SuiteClient("SUITE", "SECRET", "TICKET", token_store=store or RecordingStore(), transport=transport, **kwargs)


def _valid_token(value="CACHED"):
    return SuiteAccessToken(value, time.time() + 3600)


def test_cached_valid_token_skips_refresh(fake_transport):
    transport = fake_transport({ENDPOINT: [{"pre_auth_code": "PRE"}]})
    api = _client(transport, RecordingStore(_valid_token()))

    data = asyncio.run(api.request(ENDPOINT_URL, {"json": {}}))

    assert data == {"pre_auth_code": "PRE"}
    assert transport.paths() == [ENDPOINT]
    assert transport.calls[0][1]["params"] == {"suite_access_token": "CACHED"}
    assert api.current_token.value == "CACHED"


def test_missing_token_refreshes_once_before_request(fake_transport):
    transport = fake_transport({ISSUE: [_issued("T1")], ENDPOINT: [{"pre_auth_code": "PRE"}]})
    store = RecordingStore()
    api = _client(transport, store)

    asyncio.run(api.request(ENDPOINT_URL))

    assert transport.paths() == [ISSUE, ENDPOINT]
    assert transport.calls[1][1]["params"]["suite_access_token"] == "T1"
    assert [t.value for t in store.saved] == ["T1"]


def test_expired_cached_token_is_refreshed(fake_transport):
    transport = fake_transport({ISSUE: [_issued("T2")], ENDPOINT: [{"ok": True}]})
    expired = SuiteAccessToken("OLD", time.time() - 1)
    api = _client(transport, RecordingStore(expired))

    asyncio.run(api.request(ENDPOINT_URL))

    assert transport.count(ISSUE) == 1
    assert transport.calls[-1][1]["params"]["suite_access_token"] == "T2"


def test_refresh_payload_and_margin(fake_transport, monkeypatch):
    monkeypatch.setattr("wxsuite.token.time.time", lambda: 1_000_000.0)
    transport = fake_transport({ISSUE: [_issued("T1", 7200)]})
    api = _client(transport)

    token = asyncio.run(api.refresh_token())

    url, options = transport.calls[0]
    assert url == "https://qyapi.weixin.qq.com/cgi-bin/service/get_suite_token"
    assert options["method"] == "POST"
    assert options["json"] == {"suite_id": "SUITE", "suite_secret": "SECRET", "suite_ticket": "TICKET"}
    assert "params" not in options
    assert token == SuiteAccessToken("T1", 1_000_000.0 + 7190)
    assert api.current_token is token


def test_expiry_code_invalidates_refreshes_and_retries_once(fake_transport):
    transport = fake_transport({
        ISSUE: [_issued("T2")],
        ENDPOINT: [{"errcode": 42001, "errmsg": "access_token expired"}, {"pre_auth_code": "PRE"}],
    })
    store = RecordingStore(_valid_token("T1"))
    api = _client(transport, store)

    data = asyncio.run(api.request(ENDPOINT_URL, retry=1))

    assert data == {"pre_auth_code": "PRE"}
    assert transport.paths() == [ENDPOINT, ISSUE, ENDPOINT]
    assert store.saved[0] is None
    assert [t.value for t in store.saved[1:]] == ["T2"]
    assert transport.calls[2][1]["params"]["suite_access_token"] == "T2"


def test_expiry_code_with_exhausted_budget_raises(fake_transport):
    transport = fake_transport({
        ISSUE: [_issued("T2")],
        ENDPOINT: [{"errcode": 40001, "errmsg": "invalid credential"}],
    })
    store = RecordingStore(_valid_token("T1"))
    api = _client(transport, store)

    with pytest.raises(RemoteAPIError) as exc_info:
        asyncio.run(api.request(ENDPOINT_URL, retry=1))

    assert exc_info.value.code == 40001
    assert transport.paths() == [ENDPOINT, ISSUE, ENDPOINT]
    assert store.saved.count(None) == 1


def test_retry_budget_bounds_refreshes(fake_transport):
    transport = fake_transport({
        ISSUE: [_issued("T")],
        ENDPOINT: [{"errcode": 42001, "errmsg": "expired"}],
    })
    api = _client(transport, RecordingStore(_valid_token()))

    with pytest.raises(RemoteAPIError):
        asyncio.run(api.request(ENDPOINT_URL))

    assert transport.count(ISSUE) == 3
    assert transport.count(ENDPOINT) == 4


def test_non_expiry_error_code_never_retries(fake_transport):
    transport = fake_transport({ISSUE: [_issued()], ENDPOINT: [{"errcode": 60011, "errmsg": "no privilege"}]})
    store = RecordingStore(_valid_token())
    api = _client(transport, store)

    with pytest.raises(RemoteAPIError) as exc_info:
        asyncio.run(api.request(ENDPOINT_URL, retry=3))

    assert exc_info.value.code == 60011
    assert exc_info.value.message == "no privilege"
    assert transport.paths() == [ENDPOINT]
    assert store.saved == []


def test_custom_managed_token_is_not_refreshed_on_expiry(fake_transport):
    transport = fake_transport({ISSUE: [_issued()], ENDPOINT: [{"errcode": 42001, "errmsg": "expired"}]})
    store = RecordingStore(_valid_token())
    api = _client(transport, store, token_from_custom=True)

    with pytest.raises(RemoteAPIError):
        asyncio.run(api.request(ENDPOINT_URL))

    assert transport.paths() == [ENDPOINT]
    assert store.saved == []


@pytest.mark.parametrize("status", [199, 205, 404, 500])
def test_status_outside_success_range_is_transport_error(fake_transport, status):
    transport = fake_transport({ENDPOINT: [HttpResponse(status, {"errcode": 42001})]})
    api = _client(transport, RecordingStore(_valid_token()))

    with pytest.raises(TransportError) as exc_info:
        asyncio.run(api.request(ENDPOINT_URL))

    assert exc_info.value.status_code == status
    assert transport.paths() == [ENDPOINT]


def test_refresh_http_failure(fake_transport):
    transport = fake_transport({ISSUE: [HttpResponse(502, None)], ENDPOINT: [{"ok": True}]})
    store = RecordingStore()
    api = _client(transport, store)

    with pytest.raises(TokenRefreshError) as exc_info:
        asyncio.run(api.request(ENDPOINT_URL))

    assert exc_info.value.status_code == 502
    assert transport.paths() == [ISSUE]
    assert store.saved == []


def test_refresh_envelope_failure(fake_transport):
    transport = fake_transport({ISSUE: [{"errcode": 40085, "errmsg": "invalid suite ticket"}]})
    api = _client(transport)

    with pytest.raises(RemoteAPIError) as exc_info:
        asyncio.run(api.refresh_token())

    assert isinstance(exc_info.value, TokenRefreshError)
    assert exc_info.value.code == 40085
    assert api.current_token is None


def test_refresh_incomplete_response(fake_transport):
    transport = fake_transport({ISSUE: [{"errcode": 0, "expires_in": 7200}]})
    with pytest.raises(TokenRefreshError, match="Invalid token response"):
        asyncio.run(_client(transport).refresh_token())


@pytest.mark.parametrize("expires_in", ["soon", [7200], {}])
def test_refresh_non_numeric_expires_in(fake_transport, expires_in):
    transport = fake_transport({ISSUE: [{"suite_access_token": "T1", "expires_in": expires_in}]})
    store = RecordingStore()
    api = _client(transport, store)

    with pytest.raises(TokenRefreshError, match="Invalid token response: expires_in="):
        asyncio.run(api.refresh_token())

    assert store.saved == []
    assert api.current_token is None


def test_refresh_failure_during_retry_aborts(fake_transport):
    transport = fake_transport({
        ISSUE: [HttpResponse(500, None)],
        ENDPOINT: [{"errcode": 42001, "errmsg": "expired"}],
    })
    api = _client(transport, RecordingStore(_valid_token()))

    with pytest.raises(TokenRefreshError):
        asyncio.run(api.request(ENDPOINT_URL))

    assert transport.paths() == [ENDPOINT, ISSUE]


def test_get_latest_token(fake_transport):
    transport = fake_transport({ISSUE: [_issued("NEW")]})
    cached = _valid_token()
    assert asyncio.run(_client(transport, RecordingStore(cached)).get_latest_token()) is cached
    assert transport.calls == []

    fresh = asyncio.run(_client(transport).get_latest_token())
    assert fresh.value == "NEW"
    assert transport.count(ISSUE) == 1


def test_default_options_merged_and_caller_options_untouched(fake_transport):
    transport = fake_transport({ENDPOINT: [{"ok": True}]})
    api = _client(transport, RecordingStore(_valid_token()), defaults={"timeout": 15, "headers": {"A": "1"}})
    options = {"headers": {"B": "2"}, "params": {"debug": "1"}}

    asyncio.run(api.request(ENDPOINT_URL, options))

    sent = transport.calls[0][1]
    assert sent["timeout"] == 15
    assert sent["headers"] == {"A": "1", "B": "2"}
    assert sent["params"] == {"debug": "1", "suite_access_token": "CACHED"}
    assert options == {"headers": {"B": "2"}, "params": {"debug": "1"}}
    assert api.defaults == {"timeout": 15, "headers": {"A": "1"}}


def test_per_call_params_replace_default_params(fake_transport):
    transport = fake_transport({ENDPOINT: [{"ok": True}]})
    api = _client(transport, RecordingStore(_valid_token()), defaults={"params": {"lang": "zh_CN"}})

    asyncio.run(api.request(ENDPOINT_URL, {"params": {"debug": "1"}}))
    asyncio.run(api.request(ENDPOINT_URL))

    assert transport.calls[0][1]["params"] == {"debug": "1", "suite_access_token": "CACHED"}
    assert transport.calls[1][1]["params"] == {"lang": "zh_CN", "suite_access_token": "CACHED"}


def test_set_opts_replaces_defaults(fake_transport):
    api = _client(fake_transport({}), defaults={"timeout": 15})
    api.set_opts({"headers": {"A": "1"}})
    assert api.defaults == {"headers": {"A": "1"}}


def test_url_joins_prefix():
    api = SuiteClient("S", "X", "T", prefix="https://proxy.example/cgi-bin")
    assert api.url("service/get_agent") == "https://proxy.example/cgi-bin/service/get_agent"
    assert api.url("/service/get_agent") == "https://proxy.example/cgi-bin/service/get_agent"
    assert api.url("https://other.example/x") == "https://other.example/x"


def test_end_to_end_expiry_then_success(fake_transport):
    transport = fake_transport({
        ISSUE: [_issued("T1", 7200)],
        ENDPOINT: [{"errcode": 42001}, {"result": "ok"}],
    })
    api = _client(transport)

    data = asyncio.run(api.request(ENDPOINT_URL, {"method": "POST", "json": {}}, retry=3))

    assert data == {"result": "ok"}
    assert transport.paths() == [ISSUE, ENDPOINT, ISSUE, ENDPOINT]


def test_extend_rejects_collision_and_keeps_existing():
    class Client(BaseClient):
        pass

    original = Client.request

    async def request(api):
        return "replaced"

    async def ping(api):
        return "pong"

    with pytest.raises(MethodCollisionError) as exc_info:
        Client.extend({"ping": ping, "request": request})

    assert exc_info.value.name == "request"
    assert Client.request is original
    assert not hasattr(Client, "ping")


def test_extend_adds_bound_methods():
    class Client(BaseClient):
        pass

    async def whoami(api, suffix):
        return f"{type(api).__name__}{suffix}"

    Client.extend({"whoami": whoami})
    assert asyncio.run(Client().whoami("!")) == "Client!"

    with pytest.raises(MethodCollisionError):
        Client.extend({"whoami": whoami})
