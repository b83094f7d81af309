from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from redis.asyncio import Redis

from onetj.core.config import settings
from onetj.core.redis import get_redis

logger = logging.getLogger(__name__)

KEY_TOKEN_DATA = "tkdata"
KEY_SWITCH_ACCOUNT_REQUIRED = "swacc"


@dataclass(frozen=True)
class TokenData:
    token: str
    expire_time_sec: int

    @classmethod
    def empty(cls) -> "TokenData":
        # 没有存过 token 时的占位：永远过期
        return cls(token="", expire_time_sec=0)


class TokenStore(Protocol):
    async def get_token_data(self) -> Optional[TokenData]: ...

    async def set_token_data(self, data: TokenData) -> None: ...

    async def delete_token_data(self) -> None: ...

    async def get_switch_account_required(self) -> bool: ...

    async def set_switch_account_required(self, value: bool) -> None: ...


class MemoryTokenStore:
    """进程内存储，只用于测试和一次性脚本（进程退出即丢失）。"""

    def __init__(self) -> None:
        self._token: Optional[TokenData] = None
        self._switch_account_required = False

    async def get_token_data(self) -> Optional[TokenData]:
        return self._token

    async def set_token_data(self, data: TokenData) -> None:
        self._token = data

    async def delete_token_data(self) -> None:
        self._token = None

    async def get_switch_account_required(self) -> bool:
        return self._switch_account_required

    async def set_switch_account_required(self, value: bool) -> None:
        self._switch_account_required = bool(value)


class RedisTokenStore:
    """
    token 记录持久化到 redis，进程重启后仍然可用

    - tkdata：{"token": ..., "expire_time_sec": ...}，不设 redis TTL，过期由调用方判断
    - swacc："1" / "0"
    """

    def __init__(self, *, redis: Redis | None = None, key_prefix: str | None = None) -> None:
        self._redis = redis if redis is not None else get_redis()
        self._key_prefix = key_prefix if key_prefix is not None else settings.tongji_key_prefix

    def _key(self, name: str) -> str:
        return f"{self._key_prefix}{name}"

    async def get_token_data(self) -> Optional[TokenData]:
        raw = await self._redis.get(self._key(KEY_TOKEN_DATA))
        if not raw:
            return None

        try:
            data = json.loads(raw)
            return TokenData(token=str(data["token"]), expire_time_sec=int(data["expire_time_sec"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("token 记录损坏，已删除: %r", raw[:100])
            await self._redis.delete(self._key(KEY_TOKEN_DATA))
            return None

    async def set_token_data(self, data: TokenData) -> None:
        payload = {"token": data.token, "expire_time_sec": data.expire_time_sec}
        await self._redis.set(self._key(KEY_TOKEN_DATA), json.dumps(payload, ensure_ascii=False))

    async def delete_token_data(self) -> None:
        # key 不存在时 DEL 返回 0，不报错
        await self._redis.delete(self._key(KEY_TOKEN_DATA))

    async def get_switch_account_required(self) -> bool:
        raw = await self._redis.get(self._key(KEY_SWITCH_ACCOUNT_REQUIRED))
        return raw == "1"

    async def set_switch_account_required(self, value: bool) -> None:
        await self._redis.set(self._key(KEY_SWITCH_ACCOUNT_REQUIRED), "1" if value else "0")


def get_token_store() -> TokenStore:
    backend = (settings.tongji_token_backend or "redis").strip().lower()
    if backend == "memory":
        return MemoryTokenStore()
    if backend == "redis":
        return RedisTokenStore()
    raise RuntimeError(f"未知的 TONGJI_TOKEN_BACKEND: {settings.tongji_token_backend}")
