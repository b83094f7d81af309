# onetj/clients/tongji_client.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, NoReturn, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from onetj.core.config import settings
from onetj.core.errors import (
    ApplicationError,
    DecodeError,
    MalformedResponseError,
    SessionError,
    TransportError,
)
from onetj.core.token_store import TokenData, TokenStore, get_token_store
from onetj.schemas.tongji import (
    CurrentTermCalendar,
    Envelope,
    SchoolCalendar,
    StudentInfo,
    StudentInfoList,
    TokenResponse,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# token 剩余有效期不足这个秒数就当作已过期
TOKEN_SAFETY_MARGIN_SEC = 10

PATH_STUDENT_INFO = "/v1/dc/user/student_info"
PATH_SCHOOL_CALENDAR = "/v1/rt/onetongji/school_calendar_current_term_calendar"
PATH_UNDERGRADUATE_SCORE = "/v1/rt/onetongji/undergraduate_score"
PATH_STUDENT_TIMETABLE = "/v1/rt/onetongji/student_timetable"
PATH_STUDENT_EXAMS = "/v1/rt/onetongji/student_exams"


class TongjiClient:
    """
    同济开放平台 HTTP 访问层

    - token 只存一份（TokenStore），每次请求带 Authorization: Bearer。
    - 发请求前不检查 token 是否过期，过期由服务端响应暴露。
    - 任何“登录状态异常”（空响应、JSON 解析失败、code 不是 A00000、data 结构不符）
      都会先清掉 token 再抛 SessionError 子类；网络错误抛 TransportError，不清 token。
    - http_client / transport：测试注入（MockTransport）或复用宿主的 AsyncClient。
    """

    def __init__(
            self,
            token_store: TokenStore | None = None,
            *,
            http_client: httpx.AsyncClient | None = None,
            transport: httpx.AsyncBaseTransport | None = None,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = settings.tongji_base_url.rstrip("/")
        self._client_id = settings.tongji_client_id
        self._redirect_uri = settings.tongji_redirect_uri
        self._scopes = list(settings.tongji_scopes)

        self._connect_timeout = settings.tongji_connect_timeout
        self._read_timeout = settings.tongji_read_timeout

        self._store = token_store if token_store is not None else get_token_store()
        self._clock = clock

        # 外部传进来的 client 由外部负责关闭
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(**self._client_kwargs(transport))

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._connect_timeout,
            read=self._read_timeout,
            write=self._read_timeout,
            pool=self._connect_timeout,
        )

    def _client_kwargs(self, transport: httpx.AsyncBaseTransport | None) -> Dict[str, Any]:
        kw: Dict[str, Any] = {
            "timeout": self._timeout(),
            "headers": {"Accept": "application/json"},
        }
        if transport is not None:
            kw["transport"] = transport
        return kw

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "TongjiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}{path}"

    def _now(self) -> int:
        return int(self._clock())

    # -----------------------------
    # token / session
    # -----------------------------

    async def _get_token_data(self) -> TokenData:
        return (await self._store.get_token_data()) or TokenData.empty()

    async def is_token_valid(self) -> bool:
        data = await self._get_token_data()
        return data.expire_time_sec > self._now() + TOKEN_SAFETY_MARGIN_SEC

    async def clear_session(self) -> None:
        await self._store.delete_token_data()

    async def get_switch_account_required(self) -> bool:
        return await self._store.get_switch_account_required()

    async def set_switch_account_required(self, value: bool) -> None:
        await self._store.set_switch_account_required(value)

    def authorize_url(self, state: Optional[str] = None) -> str:
        """用户在浏览器里授权的地址，授权后回跳 redirect_uri?code=..."""
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._scopes),
        }
        if state:
            params["state"] = state
        return str(httpx.URL(self._url(settings.tongji_authorize_path), params=params))

    async def exchange_code_for_token(self, code: str, *, request_id: Optional[str] = None) -> bool:
        form = {
            "grant_type": "authorization_code",
            "client_id": self._client_id,
            "code": code,
            "redirect_uri": self._redirect_uri,
        }
        headers = {"X-Request-ID": request_id} if request_id else None

        try:
            resp = await self._http.post(self._url(settings.tongji_token_path), data=form, headers=headers)
        except httpx.RequestError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e

        if not resp.content:
            logger.warning("code 换 token 失败：响应为空 (HTTP %s)", resp.status_code)
            return False

        try:
            token = TokenResponse.model_validate_json(resp.content)
        except ValidationError as e:
            logger.warning("code 换 token 失败：HTTP %s, %s", resp.status_code, e.errors()[:3])
            return False

        expire = self._now() + token.expires_in - TOKEN_SAFETY_MARGIN_SEC
        await self._store.set_token_data(TokenData(token=token.access_token, expire_time_sec=expire))
        logger.info("已获取 token，有效期 %ss", token.expires_in)
        return True

    # -----------------------------
    # request execution
    # -----------------------------

    async def build_authorized_request(
            self,
            url: str,
            method: str = "GET",
            *,
            params: Optional[Dict[str, Any]] = None,
            request_id: Optional[str] = None,
    ) -> httpx.Request:
        token = (await self._get_token_data()).token
        headers = {"Authorization": f"Bearer {token}"}
        if request_id:
            headers["X-Request-ID"] = request_id
        return self._http.build_request(method.upper(), self._url(url), params=params, headers=headers)

    async def _session_failed(self, exc: SessionError) -> NoReturn:
        await self.clear_session()
        logger.warning("登录状态异常，已清除 token: %s (%s)", exc.message, exc.reason)
        raise exc

    async def execute(self, request: httpx.Request) -> Any:
        """发送请求并解开信封，返回 data（dict 或 list）"""
        try:
            resp = await self._http.send(request)
        except httpx.RequestError as e:
            logger.warning("请求同济开放平台失败 %s %s: %r", request.method, request.url.path, e)
            raise TransportError(str(e) or e.__class__.__name__) from e

        status = resp.status_code
        if not resp.content:
            await self._session_failed(MalformedResponseError(status_code=status))

        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            await self._session_failed(MalformedResponseError(f"json 解析错误。{status}", status_code=status))

        try:
            envelope = Envelope.model_validate(body)
        except ValidationError:
            envelope = Envelope(code=None)

        if not envelope.ok:
            await self._session_failed(
                ApplicationError(f"code: {envelope.code}", code=envelope.code, status_code=status)
            )

        return envelope.data

    async def _get(self, path: str, *, params: Optional[Dict[str, Any]] = None, request_id: Optional[str] = None) -> Any:
        request = await self.build_authorized_request(path, params=params, request_id=request_id)
        return await self.execute(request)

    async def _decode(self, model: Type[M], data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            await self._session_failed(DecodeError(f"{model.__name__} 结构不符: {e.error_count()} 处错误"))

    async def _expect(self, data: Any, shape: type, what: str) -> Any:
        if not isinstance(data, shape):
            await self._session_failed(DecodeError(f"{what} 应为 {shape.__name__}，实际为 {type(data).__name__}"))
        return data

    # -----------------------------
    # endpoints
    # -----------------------------

    async def get_student_info(self, *, request_id: Optional[str] = None) -> StudentInfo:
        data = await self._get(PATH_STUDENT_INFO, request_id=request_id)
        items = await self._decode(StudentInfoList, data)
        if not items.root:
            await self._session_failed(DecodeError("student_info 为空数组"))
        return items.root[0]

    async def get_one_tongji_school_calendar(self, *, request_id: Optional[str] = None) -> SchoolCalendar:
        data = await self._get(PATH_SCHOOL_CALENDAR, request_id=request_id)
        raw = await self._decode(CurrentTermCalendar, data)
        return SchoolCalendar.from_current_term(raw)

    async def get_one_tongji_undergraduate_score(self, *, request_id: Optional[str] = None) -> dict[str, Any]:
        # calendarId=-1：全部学期
        data = await self._get(PATH_UNDERGRADUATE_SCORE, params={"calendarId": -1}, request_id=request_id)
        return await self._expect(data, dict, "undergraduate_score")

    async def get_one_tongji_student_timetable(self, *, request_id: Optional[str] = None) -> list[Any]:
        data = await self._get(PATH_STUDENT_TIMETABLE, request_id=request_id)
        return await self._expect(data, list, "student_timetable")

    async def get_one_tongji_student_exams(self, *, request_id: Optional[str] = None) -> dict[str, Any]:
        data = await self._get(PATH_STUDENT_EXAMS, request_id=request_id)
        return await self._expect(data, dict, "student_exams")
