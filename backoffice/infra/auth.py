from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "720"))


def create_access_token(
    *,
    user_id: str,
    role: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Mint a bearer token the way the identity service does.

    Session issuance belongs to the identity collaborator; this helper exists
    for tooling and tests that need a token it would have issued.
    """
    now = datetime.now(UTC)
    expire_delta = timedelta(minutes=expires_minutes or JWT_EXPIRES_MIN)
    payload: dict[str, Any] = {
        "sub": user_id,
        "jti": uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + expire_delta).timestamp()),
    }
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    decoded = jwt.decode(
        token,
        JWT_SECRET,
        algorithms=[JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    if not isinstance(decoded, dict):
        raise ValueError("Invalid token payload")
    return decoded


def token_ttl_seconds(claims: dict[str, Any]) -> int:
    exp = claims.get("exp")
    if not isinstance(exp, int | float):
        return JWT_EXPIRES_MIN * 60
    remaining = int(exp - datetime.now(UTC).timestamp())
    return max(remaining, 1)
