"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from questclash.auth.wallet import is_valid_address, normalize_address
from questclash.users.schemas import UserResponse


class NonceResponse(BaseModel):
    nonce: str
    expires_in: int


class VerifyRequest(BaseModel):
    """Signed sign-in message from a wallet."""

    address: str
    message: str = Field(..., min_length=32, max_length=4096)
    signature: str = Field(..., min_length=1, max_length=512)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not is_valid_address(v.strip()):
            msg = "Invalid wallet address"
            raise ValueError(msg)
        return normalize_address(v)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class TokenStatusResponse(BaseModel):
    ok: bool = True
    user_id: int
    address: str
