from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class TongjiApiError(Exception):
    """同济开放平台调用失败的基类"""

    reason = "TONGJI_API_ERROR"

    def __init__(self, message: str = "无", *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(TongjiApiError):
    """网络不可达 / IO 失败。不影响登录状态。"""

    reason = "NETWORK_ERROR"


class SessionError(TongjiApiError):
    """
    登录状态异常：抛出前 token 已被清除，调用方应引导用户重新登录。

    注意：服务端业务错误也会走到这里（无法和 token 过期区分）。
    """

    reason = "SESSION_INVALID"


class MalformedResponseError(SessionError):
    """响应体缺失或不是合法的 JSON 对象"""

    reason = "MALFORMED_RESPONSE"


class DecodeError(MalformedResponseError):
    """data 字段和接口预期的结构不符"""

    reason = "DECODE_ERROR"


class ApplicationError(SessionError):
    """信封里的 code 不是 A00000"""

    reason = "APPLICATION_ERROR"

    def __init__(self, message: str = "无", *, code: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message, status_code=status_code)
        self.code = code


def _now():
    return datetime.now(timezone.utc).isoformat()


def _body(request: Request, message, **extra):
    return {
        "success": False,
        "message": message,
        **extra,
        "path": str(request.url.path),
        "requestId": getattr(request.state, "request_id", None),
        "timestamp": _now(),
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=_body(request, exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=_body(request, "参数校验失败", errors=exc.errors()),
    )


async def session_error_handler(request: Request, exc: SessionError):
    # Web 端的“跳转登录页”：401 + 授权地址，由前端负责跳转
    client = getattr(request.app.state, "tongji_client", None)
    login_url = client.authorize_url() if client is not None else None
    return JSONResponse(
        status_code=401,
        content=_body(
            request,
            f"请重新登录。错误信息: {exc.message}",
            reason=exc.reason,
            upstreamStatus=exc.status_code,
            loginUrl=login_url,
        ),
    )


async def transport_error_handler(request: Request, exc: TransportError):
    return JSONResponse(
        status_code=502,
        content=_body(request, f"无法连接同济开放平台: {exc.message}", reason=exc.reason),
    )
