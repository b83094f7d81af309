"""弹窗 / 跳转登录页的抽象

客户端本身不碰 UI；交互式宿主（桌面、命令行）实现 Notifier，
由 TongjiService 决定什么时候弹什么。
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Alert:
    title: str
    message: str
    button: str
    cancelable: bool = True
    # 点击按钮
    on_action: Optional[Callable[[], None]] = None
    # 弹窗消失（无论怎么消失的）
    on_dismiss: Optional[Callable[[], None]] = None


class Notifier(Protocol):
    def run_on_ui(self, fn: Callable[[], None]) -> None:
        """把 fn 投递到宿主允许操作 UI 的线程 / 事件循环上执行"""
        ...

    def show_alert(self, alert: Alert) -> None: ...

    def navigate_to_login(self, login_url: str) -> None:
        """跳到登录页并结束当前页面"""
        ...


class AlertGate:
    """
    “当前是否已经有一个网络错误弹窗”的标记。

    多个请求同时失败时只有第一个拿到 gate，其余直接跳过；弹窗消失时 release。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._showing = False

    def try_acquire(self) -> bool:
        with self._lock:
            if self._showing:
                return False
            self._showing = True
            return True

    def release(self) -> None:
        with self._lock:
            self._showing = False

    @property
    def showing(self) -> bool:
        with self._lock:
            return self._showing


class LoggingNotifier:
    """无界面宿主用：弹窗写日志并立即关闭"""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def run_on_ui(self, fn: Callable[[], None]) -> None:
        fn()

    def show_alert(self, alert: Alert) -> None:
        self._log.warning("[%s] %s", alert.title, alert.message)
        try:
            if alert.on_action is not None:
                alert.on_action()
        finally:
            if alert.on_dismiss is not None:
                alert.on_dismiss()

    def navigate_to_login(self, login_url: str) -> None:
        self._log.warning("需要重新登录，请在浏览器中打开: %s", login_url)
