from __future__ import annotations

from functools import lru_cache
import redis.asyncio as redis
from redis.asyncio import Redis

from onetj.core.config import settings


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    if settings.redis_url:
        # URL 方式：支持 redis:// 和 rediss://
        return redis.from_url(settings.redis_url, decode_responses=True)

    # 字段方式：token 持久化允许无密码的本机 redis
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        username=settings.redis_username,
        password=settings.redis_password,
        ssl=settings.redis_ssl,
        decode_responses=True,
    )
