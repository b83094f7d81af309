from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Request
from starlette.responses import Response


REQUEST_ID_HEADER = "X-Request-ID"
# 会被原样转发给上游，太长的直接截断
MAX_REQUEST_ID_LENGTH = 64


def _clean_request_id(raw: Optional[str]) -> str:
    rid = (raw or "").strip()[:MAX_REQUEST_ID_LENGTH]
    # 出站 header 只能是 ASCII，不合规的直接换成新生成的
    if not rid or not (rid.isascii() and rid.isprintable()):
        return uuid.uuid4().hex
    return rid


async def request_id_middleware(request: Request, call_next):
    rid = _clean_request_id(request.headers.get(REQUEST_ID_HEADER))
    request.state.request_id = rid

    response: Response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = rid
    return response


def get_request_id(request: Request) -> Optional[str]:
    # 转发给同济开放平台，方便两边日志对得上
    return getattr(request.state, "request_id", None)
