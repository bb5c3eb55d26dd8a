"""
HS256 bearer tokens.

Tokens are stateless; logout and refresh revoke a token by writing its
``jti`` to a Redis denylist that expires together with the token.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from redis.asyncio import Redis

from questclash.config import get_settings

_REVOKED_PREFIX = "auth:revoked:"


def create_access_token(user_id: int, wallet_address: str) -> str:
    """
    Create a signed access token.

    Args:
        user_id: The user's database ID.
        wallet_address: The user's wallet address (lower-case).

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "address": wallet_address,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify signature, expiry, issuer and type of an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid or expired.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub", "jti"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != "access":
        msg = "Invalid token type"
        raise jwt.InvalidTokenError(msg)
    return payload


async def revoke_token(redis: Redis, payload: dict[str, Any]) -> None:
    """Denylist a token's jti until it would have expired anyway."""
    ttl = int(payload["exp"] - datetime.now(timezone.utc).timestamp())
    if ttl > 0:
        await redis.set(f"{_REVOKED_PREFIX}{payload['jti']}", "1", ex=ttl)


async def is_revoked(redis: Redis, jti: str) -> bool:
    return bool(await redis.exists(f"{_REVOKED_PREFIX}{jti}"))
