from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fastapi import Request

from onetj.clients.tongji_client import TongjiClient
from onetj.core.errors import SessionError, TransportError
from onetj.core.notify import Alert, AlertGate, Notifier
from onetj.schemas.tongji import SchoolCalendar, StudentInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

NETWORK_ERROR_TITLE = "网络错误"
SESSION_ERROR_TITLE = "登录状态异常"


class TongjiService:
    """
    交互式宿主（有弹窗、有登录页）用的适配层

    - 所有接口失败时返回 None，错误详情只通过弹窗告诉用户
    - 网络错误弹窗同一时间最多一个（AlertGate），弹窗关闭后才允许下一个
    - 登录状态异常：TongjiClient 已清 token，这里弹不可取消的提示，确认后跳登录页
    """

    def __init__(self, client: TongjiClient, notifier: Notifier, *, gate: AlertGate | None = None) -> None:
        self.client = client
        self.notifier = notifier
        self.gate = gate or AlertGate()

    def _network_error(self, exc: TransportError) -> None:
        if not self.gate.try_acquire():
            # 已经有一个网络错误弹窗了
            logger.debug("网络错误弹窗已存在，跳过: %s", exc.message)
            return

        msg = "请检查网络连接，然后重新打开此页面。\n\n详细信息：\n" + exc.message
        alert = Alert(
            title=NETWORK_ERROR_TITLE,
            message=msg,
            button="好",
            on_dismiss=self.gate.release,
        )
        try:
            self.notifier.run_on_ui(lambda: self.notifier.show_alert(alert))
        except Exception:
            # 弹窗没出来，on_dismiss 不会被调用
            self.gate.release()
            logger.exception("网络错误弹窗显示失败")

    def _session_error(self, exc: SessionError) -> None:
        msg = "请重新登录。\n\n错误信息: \n" + exc.message
        login_url = self.client.authorize_url()
        alert = Alert(
            title=SESSION_ERROR_TITLE,
            message=msg,
            button="OK",
            cancelable=False,
            on_action=lambda: self.notifier.navigate_to_login(login_url),
        )
        try:
            self.notifier.run_on_ui(lambda: self.notifier.show_alert(alert))
        except Exception:
            logger.exception("登录状态异常弹窗显示失败")

    async def _call(self, fn: Callable[[], Awaitable[T]]) -> Optional[T]:
        try:
            return await fn()
        except TransportError as e:
            self._network_error(e)
        except SessionError as e:
            self._session_error(e)
        return None

    # ---- session ----

    async def is_token_valid(self) -> bool:
        return await self.client.is_token_valid()

    async def clear_session(self) -> None:
        await self.client.clear_session()

    async def get_switch_account_required(self) -> bool:
        return await self.client.get_switch_account_required()

    async def set_switch_account_required(self, value: bool) -> None:
        await self.client.set_switch_account_required(value)

    async def exchange_code_for_token(self, code: str) -> bool:
        try:
            return await self.client.exchange_code_for_token(code)
        except TransportError as e:
            self._network_error(e)
            return False

    # ---- endpoints ----

    async def get_student_info(self) -> Optional[StudentInfo]:
        return await self._call(self.client.get_student_info)

    async def get_one_tongji_school_calendar(self) -> Optional[SchoolCalendar]:
        return await self._call(self.client.get_one_tongji_school_calendar)

    async def get_one_tongji_undergraduate_score(self) -> Optional[dict[str, Any]]:
        return await self._call(self.client.get_one_tongji_undergraduate_score)

    async def get_one_tongji_student_timetable(self) -> Optional[list[Any]]:
        return await self._call(self.client.get_one_tongji_student_timetable)

    async def get_one_tongji_student_exams(self) -> Optional[dict[str, Any]]:
        return await self._call(self.client.get_one_tongji_student_exams)


def get_tongji_client(request: Request) -> TongjiClient:
    # lifespan 里创建，整个进程一份
    return request.app.state.tongji_client
