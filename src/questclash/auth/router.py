"""Authentication router: all /api/auth/* endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth.dependencies import get_current_user, get_token_payload
from questclash.auth.jwt import create_access_token, revoke_token
from questclash.auth.schemas import NonceResponse, TokenResponse, TokenStatusResponse, VerifyRequest
from questclash.auth.service import consume_nonce, issue_nonce, login_wallet_user
from questclash.auth.wallet import extract_nonce, verify_wallet_signature
from questclash.config import get_settings
from questclash.database import get_session
from questclash.db.models import User
from questclash.errors import Unauthorized
from questclash.redis_client import get_redis
from questclash.users.schemas import UserResponse
from questclash.workflow import workflow

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _token_response(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.wallet_address),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.get("/nonce", response_model=NonceResponse)
async def nonce(
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> NonceResponse:
    """Issue a single-use nonce to embed at the end of the sign-in message."""
    value = await issue_nonce(redis)
    return NonceResponse(nonce=value, expires_in=get_settings().nonce_ttl_seconds)


@router.post("/verify", response_model=TokenResponse)
async def verify(
    body: VerifyRequest,
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Verify a wallet signature and issue a bearer token."""
    value = extract_nonce(body.message)
    # Deleting first makes the nonce single-use even when the signature is bad
    if value is None or not await consume_nonce(redis, value):
        raise Unauthorized("Invalid or reused nonce")

    if not verify_wallet_signature(body.address, body.message, body.signature):
        logger.info("wallet_signature_rejected", address=body.address)
        raise Unauthorized("Invalid signature")

    async with workflow(db, "wallet_login"):
        user, created = await login_wallet_user(db, body.address)

    logger.info("wallet_login", user_id=user.id, created=created)
    return _token_response(user)


@router.get("/verify", response_model=TokenStatusResponse)
async def verify_token_status(
    payload: dict[str, Any] = Depends(get_token_payload),
    user: User = Depends(get_current_user),
) -> TokenStatusResponse:
    """Check that the bearer token is valid and not revoked."""
    return TokenStatusResponse(user_id=user.id, address=payload["address"])


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    payload: dict[str, Any] = Depends(get_token_payload),
    user: User = Depends(get_current_user),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> TokenResponse:
    """Swap a valid token for a fresh one; the old one is revoked."""
    await revoke_token(redis, payload)
    return _token_response(user)


@router.post("/logout")
async def logout(
    payload: dict[str, Any] = Depends(get_token_payload),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> dict[str, Any]:
    """Revoke the presented token."""
    await revoke_token(redis, payload)
    return {"ok": True, "message": "Logged out successfully"}
