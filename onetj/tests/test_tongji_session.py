from urllib.parse import parse_qs

import httpx
import pytest

from conftest import NOW, make_client
from onetj.core.errors import TransportError
from onetj.core.token_store import TokenData


def _never_called(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request {request.url}")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "expire, valid",
    [
        (NOW + 10, False),
        (NOW + 11, True),
        (NOW, False),
        (NOW + 3600, True),
    ],
)
async def test_token_valid_boundary(store, clock, expire, valid):
    await store.set_token_data(TokenData(token="t", expire_time_sec=expire))
    client = make_client(_never_called, store=store, clock=clock)
    assert await client.is_token_valid() is valid


@pytest.mark.asyncio
async def test_token_invalid_when_absent(store, clock):
    client = make_client(_never_called, store=store, clock=clock)
    assert await client.is_token_valid() is False


@pytest.mark.asyncio
async def test_clear_session_twice(store):
    await store.set_token_data(TokenData(token="t", expire_time_sec=NOW + 100))
    client = make_client(_never_called, store=store)

    await client.clear_session()
    await client.clear_session()

    assert await store.get_token_data() is None
    assert await client.is_token_valid() is False


@pytest.mark.asyncio
async def test_exchange_code_stores_token(store, clock):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["method"] = request.method
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"access_token": "T", "expires_in": 3600})

    client = make_client(handler, store=store, clock=clock)
    assert await client.exchange_code_for_token("the-code") is True

    assert await store.get_token_data() == TokenData(token="T", expire_time_sec=NOW + 3600 - 10)
    assert seen["method"] == "POST"
    assert seen["url"] == "https://api.tongji.edu.cn/v1/token"
    assert seen["form"] == {
        "grant_type": ["authorization_code"],
        "client_id": ["authorization-xxb-onedottongji-yuchen"],
        "code": ["the-code"],
        "redirect_uri": ["onetj://fakeredir.gardilily.com"],
    }
    assert await client.is_token_valid() is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b""),
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(400, json={"error": "invalid_grant"}),
        httpx.Response(200, json=["access_token"]),
    ],
)
async def test_exchange_code_failure_keeps_old_token(store, response):
    old = TokenData(token="old", expire_time_sec=NOW + 100)
    await store.set_token_data(old)
    client = make_client(lambda request: response, store=store)

    assert await client.exchange_code_for_token("bad") is False
    assert await store.get_token_data() == old


@pytest.mark.asyncio
async def test_exchange_code_network_error_propagates(store):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = make_client(handler, store=store)
    with pytest.raises(TransportError):
        await client.exchange_code_for_token("c")


@pytest.mark.asyncio
async def test_switch_account_flag(store):
    client = make_client(_never_called, store=store)
    assert await client.get_switch_account_required() is False

    await client.set_switch_account_required(True)
    assert await client.get_switch_account_required() is True
    assert await store.get_switch_account_required() is True


def test_authorize_url_carries_scopes():
    client = make_client(_never_called)
    url = httpx.URL(client.authorize_url(state="xyz"))

    assert url.host == "api.tongji.edu.cn"
    assert url.path == "/keycloak/realms/OpenPlatform/protocol/openid-connect/auth"
    assert url.params["client_id"] == "authorization-xxb-onedottongji-yuchen"
    assert url.params["redirect_uri"] == "onetj://fakeredir.gardilily.com"
    assert url.params["response_type"] == "code"
    assert url.params["state"] == "xyz"
    scopes = url.params["scope"].split(" ")
    assert len(scopes) == 7
    assert "rt_onetongji_student_exams" in scopes
