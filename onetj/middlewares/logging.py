# onetj/middlewares/logging.py
"""请求/响应日志中间件

纯 ASGI 实现。授权码、token、Authorization 头一律打码后再落日志。
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any

from starlette.types import ASGIApp, Receive, Scope, Send, Message

from onetj.core.config import settings

logger = logging.getLogger("api.access")


def set_access_log_level(level: str) -> None:
    # DEBUG 时才输出请求 / 响应体
    logger.setLevel(level.upper())


set_access_log_level(settings.log_level)

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(message)s"
    ))
    logger.addHandler(handler)

SECRET_FIELDS = {"code", "access_token", "token", "authorization"}
MAX_LOGGED_BODY = 2000


def mask_secrets(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: ("***" if str(k).lower() in SECRET_FIELDS and isinstance(v, str) else mask_secrets(v))
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [mask_secrets(v) for v in obj]
    return obj


def _json_or_none(parts: list[bytes]) -> Any:
    if not parts:
        return None
    try:
        return json.loads(b"".join(parts).decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None


class LoggingMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        method = scope.get("method", "")
        path = scope.get("path", "")

        body_parts: list[bytes] = []

        async def receive_wrapper() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body = message.get("body", b"")
                if body:
                    body_parts.append(body)
            return message

        response_status = 0
        response_body_parts: list[bytes] = []

        async def send_wrapper(message: Message) -> None:
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message.get("status", 0)
            elif message["type"] == "http.response.body":
                body = message.get("body", b"")
                if body:
                    response_body_parts.append(body)
            await send(message)

        logger.info(f">>> {method} {path}")

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        finally:
            duration = time.time() - start_time

            if method in ("POST", "PUT", "PATCH"):
                req_content = _json_or_none(body_parts)
                if req_content is not None:
                    logger.debug(f"    Body: {json.dumps(mask_secrets(req_content), ensure_ascii=False)}")

            resp_log = f"<<< {method} {path} | Status: {response_status} | Time: {duration:.3f}s"
            # 成绩 / 课表之类的个人数据只在 DEBUG 下输出
            if logger.isEnabledFor(logging.DEBUG):
                resp_content = _json_or_none(response_body_parts)
                if resp_content is not None:
                    resp_json = json.dumps(mask_secrets(resp_content), ensure_ascii=False)
                    if len(resp_json) > MAX_LOGGED_BODY:
                        resp_json = resp_json[:MAX_LOGGED_BODY] + "...[截断]"
                    resp_log += f"\n{resp_json}"

            logger.info(resp_log)
