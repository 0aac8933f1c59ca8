from __future__ import annotations

import os
from functools import lru_cache

from redis import Redis

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
REVOKED_TOKEN_PREFIX = "backoffice:revoked-token:"


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    return Redis.from_url(REDIS_URL, decode_responses=True)


def check_redis_ready() -> bool:
    try:
        return bool(get_redis().ping())
    except Exception:
        return False


def revoke_token(jti: str, ttl_seconds: int) -> None:
    get_redis().set(f"{REVOKED_TOKEN_PREFIX}{jti}", "1", ex=max(ttl_seconds, 1))


def is_token_revoked(jti: str | None) -> bool:
    if not jti:
        return False
    return get_redis().get(f"{REVOKED_TOKEN_PREFIX}{jti}") is not None
