"""FastAPI authentication dependencies."""

from __future__ import annotations

from typing import Any

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth.jwt import is_revoked, verify_token
from questclash.auth.service import get_user_by_id
from questclash.database import get_session
from questclash.db.models import User
from questclash.errors import Unauthorized
from questclash.redis_client import get_redis

_bearer = HTTPBearer(auto_error=False)


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> dict[str, Any]:
    """Decode the bearer token and reject revoked ones."""
    if credentials is None:
        raise Unauthorized("Missing bearer token")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise Unauthorized(str(e)) from e
    if await is_revoked(redis, payload["jti"]):
        raise Unauthorized("Token has been revoked")
    return payload


async def get_current_user(
    payload: dict[str, Any] = Depends(get_token_payload),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the authenticated user. Raises 401 if the token's user is gone."""
    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise Unauthorized("User not found")
    return user
