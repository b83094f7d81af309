# onetj/tests/conftest.py
from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager

from onetj.clients.tongji_client import TongjiClient
from onetj.core.notify import Alert
from onetj.core.token_store import MemoryTokenStore
from onetj.main import app

NOW = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingNotifier:
    """记录弹窗，不自动关闭（模拟用户还没点）"""

    def __init__(self) -> None:
        self.alerts: list[Alert] = []
        self.login_urls: list[str] = []
        self.ui_calls = 0

    def run_on_ui(self, fn: Callable[[], None]) -> None:
        self.ui_calls += 1
        fn()

    def show_alert(self, alert: Alert) -> None:
        self.alerts.append(alert)

    def navigate_to_login(self, login_url: str) -> None:
        self.login_urls.append(login_url)


def envelope(data: Any, code: str = "A00000") -> httpx.Response:
    return httpx.Response(200, json={"code": code, "data": data})


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    store: Optional[MemoryTokenStore] = None,
    clock: Optional[FakeClock] = None,
) -> TongjiClient:
    return TongjiClient(
        store if store is not None else MemoryTokenStore(),
        transport=httpx.MockTransport(handler),
        clock=clock or FakeClock(),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def api():
    """
    Web 宿主测试用：
    - 返回 (httpx 客户端, 上游请求处理函数的设置器)
    - 上游同济开放平台用 MockTransport 模拟
    """
    upstream: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def dispatch(request: httpx.Request) -> httpx.Response:
        return upstream["handler"](request)

    store = MemoryTokenStore()
    tongji = make_client(dispatch, store=store)
    app.state.tongji_client = tongji

    def set_handler(handler: Callable[[httpx.Request], httpx.Response]) -> MemoryTokenStore:
        upstream["handler"] = handler
        return store

    async with LifespanManager(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac, set_handler

    await tongji.aclose()
    app.state.tongji_client = None
