"""Integration tests for wallet sign-in, token refresh and logout."""

from __future__ import annotations

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fakeredis import FakeAsyncRedis
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth import service as auth_service
from questclash.auth.service import get_user_by_address
from questclash.database import get_session_factory
from questclash.db.models import XPTransaction
from tests.conftest import make_user, wallet


async def _nonce(client: AsyncClient) -> str:
    response = await client.get("/api/auth/nonce")
    assert response.status_code == 200
    return response.json()["nonce"]


def _signed_body(account, nonce: str) -> dict[str, str]:
    message = f"Welcome to QuestClash!\n\nSign this message to log in.\n\nNonce: {nonce}"
    signed = account.sign_message(encode_defunct(text=message))
    return {
        "address": account.address,
        "message": message,
        "signature": "0x" + bytes(signed.signature).hex(),
    }


async def _login(client: AsyncClient, account) -> dict:
    response = await client.post("/api/auth/verify", json=_signed_body(account, await _nonce(client)))
    assert response.status_code == 200, response.text
    return response.json()


class TestNonce:
    @pytest.mark.asyncio
    async def test_nonce_is_stored_with_ttl(self, client: AsyncClient, fake_redis: FakeAsyncRedis):
        response = await client.get("/api/auth/nonce")
        data = response.json()
        assert len(data["nonce"]) == 32
        assert data["expires_in"] == 300
        ttl = await fake_redis.ttl(f"auth:nonce:{data['nonce']}")
        assert 0 < ttl <= 300


class TestWalletLogin:
    @pytest.mark.asyncio
    async def test_first_login_creates_user_with_bonus(self, client: AsyncClient):
        account = Account.create()
        data = await _login(client, account)

        assert data["token_type"] == "bearer"
        assert data["access_token"]
        user = data["user"]
        address = account.address.lower()
        assert user["wallet_address"] == address
        assert user["username"] == f"base-{address[2:6]}"
        assert user["avatar"].endswith(address)
        assert user["reward_points"] == 1000
        assert user["xp"] == 0
        assert user["level"] == 1
        assert user["streak"] == 1
        assert user["rank"] >= 1

        async with get_session_factory()() as db:
            rows = (await db.execute(
                select(XPTransaction).where(XPTransaction.user_id == user["id"])
            )).scalars().all()
        assert [(r.transaction_type, r.amount) for r in rows] == [("signup_bonus", 1000)]

    @pytest.mark.asyncio
    async def test_second_login_reuses_user(self, client: AsyncClient):
        account = Account.create()
        first = await _login(client, account)
        second = await _login(client, account)
        assert second["user"]["id"] == first["user"]["id"]
        assert second["user"]["reward_points"] == 1000
        assert second["user"]["streak"] == 1

    @pytest.mark.asyncio
    async def test_nonce_is_single_use(self, client: AsyncClient):
        account = Account.create()
        body = _signed_body(account, await _nonce(client))
        assert (await client.post("/api/auth/verify", json=body)).status_code == 200

        response = await client.post("/api/auth/verify", json=body)
        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_unknown_nonce_rejected(self, client: AsyncClient):
        body = _signed_body(Account.create(), "f" * 32)
        response = await client.post("/api/auth/verify", json=body)
        assert response.status_code == 401
        assert "nonce" in response.json()["detail"].lower()

    @pytest.mark.asyncio
    async def test_bad_signature_rejected_and_nonce_burned(self, client: AsyncClient, fake_redis: FakeAsyncRedis):
        signer, claimed = Account.create(), Account.create()
        nonce = await _nonce(client)
        body = _signed_body(signer, nonce)
        body["address"] = claimed.address

        response = await client.post("/api/auth/verify", json=body)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid signature"
        assert await fake_redis.exists(f"auth:nonce:{nonce}") == 0

    @pytest.mark.asyncio
    async def test_invalid_address_is_validation_error(self, client: AsyncClient):
        body = _signed_body(Account.create(), await _nonce(client))
        body["address"] = "0x1234"
        response = await client.post("/api/auth/verify", json=body)
        assert response.status_code == 422


class TestTokens:
    @pytest.mark.asyncio
    async def test_token_status(self, client: AsyncClient):
        account = Account.create()
        data = await _login(client, account)
        response = await client.get(
            "/api/auth/verify", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True, "user_id": data["user"]["id"], "address": account.address.lower()}

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/users/me")
        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/users/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_revokes_old_token(self, client: AsyncClient):
        data = await _login(client, Account.create())
        old = {"Authorization": f"Bearer {data['access_token']}"}

        response = await client.post("/api/auth/refresh", headers=old)
        assert response.status_code == 200
        new = {"Authorization": f"Bearer {response.json()['access_token']}"}

        assert (await client.get("/api/users/me", headers=old)).status_code == 401
        assert (await client.get("/api/users/me", headers=new)).status_code == 200

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client: AsyncClient):
        data = await _login(client, Account.create())
        headers = {"Authorization": f"Bearer {data['access_token']}"}

        response = await client.post("/api/auth/logout", headers=headers)
        assert response.status_code == 200
        assert response.json()["ok"] is True

        assert (await client.get("/api/users/me", headers=headers)).status_code == 401


class TestConcurrentFirstLogin:
    @pytest.mark.asyncio
    async def test_lost_insert_race_loads_existing_user(self, db_session: AsyncSession, monkeypatch):
        winner = await make_user("base-winner", wallet_n=4242)
        calls = []

        async def first_lookup_misses(db, address):
            calls.append(address)
            return None if len(calls) == 1 else await get_user_by_address(db, address)

        monkeypatch.setattr(auth_service, "get_user_by_address", first_lookup_misses)
        user, created = await auth_service.get_or_create_user(db_session, wallet(4242))

        assert created is False
        assert user.id == winner.id
        assert len(calls) == 2
        ledger = await db_session.scalar(
            select(func.count()).select_from(XPTransaction).where(XPTransaction.user_id == winner.id)
        )
        assert ledger == 0

    @pytest.mark.asyncio
    async def test_username_collision_falls_back_to_full_address(self, db_session: AsyncSession, monkeypatch):
        await make_user("base-0000")

        async def stale_username(db, address):
            return "base-0000"

        monkeypatch.setattr(auth_service, "_available_username", stale_username)
        address = wallet(0xBEEF)
        user, created = await auth_service.get_or_create_user(db_session, address)

        assert created is True
        assert user.username == f"base-{address[2:]}"
        assert user.reward_points == 1000
