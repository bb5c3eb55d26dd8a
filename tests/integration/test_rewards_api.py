"""Integration tests: pending rewards, claims and history."""

from __future__ import annotations

from decimal import Decimal

import pytest
from httpx import AsyncClient

from questclash.database import get_session_factory
from questclash.db.base import utcnow
from questclash.db.models import Reward
from tests.conftest import auth_headers, load_user, make_user


async def _reward(user_id: int, type_: str, amount: str, claimed: bool = False) -> int:
    async with get_session_factory()() as db:
        reward = Reward(user_id=user_id, type=type_, amount=Decimal(amount), quest_title="10K Morning Run")
        if claimed:
            reward.claimed_at = utcnow()
        db.add(reward)
        await db.commit()
        return reward.id


class TestClaim:
    @pytest.mark.asyncio
    async def test_claim_usdc_credits_balance(self, client: AsyncClient):
        user = await make_user("claimer")
        reward_id = await _reward(user.id, "usdc", "5.00")
        headers = auth_headers(user)

        pending = (await client.get("/api/rewards/pending", headers=headers)).json()
        assert [r["id"] for r in pending] == [reward_id]

        response = await client.post(f"/api/rewards/claim/{reward_id}", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["usdc_balance"] == 5.0
        assert data["reward"]["claimed_at"] is not None

        assert (await client.get("/api/rewards/pending", headers=headers)).json() == []
        history = (await client.get("/api/rewards/history", headers=headers)).json()
        assert [r["id"] for r in history] == [reward_id]
        assert float((await load_user(user.id)).usdc_balance) == 5.0

    @pytest.mark.asyncio
    async def test_claim_twice_conflicts(self, client: AsyncClient):
        user = await make_user("double_claimer")
        reward_id = await _reward(user.id, "usdc", "2.50")
        headers = auth_headers(user)

        assert (await client.post(f"/api/rewards/claim/{reward_id}", headers=headers)).status_code == 200
        response = await client.post(f"/api/rewards/claim/{reward_id}", headers=headers)
        assert response.status_code == 409
        assert response.json()["code"] == "reward_already_claimed"
        assert float((await load_user(user.id)).usdc_balance) == 2.5

    @pytest.mark.asyncio
    async def test_claim_xp_reward(self, client: AsyncClient):
        user = await make_user("xp_claimer", xp=900)
        reward_id = await _reward(user.id, "xp", "200")

        response = await client.post(f"/api/rewards/claim/{reward_id}", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["xp"] == 1100
        stored = await load_user(user.id)
        assert stored.level == 2
        assert stored.xp_to_next_level == 900

    @pytest.mark.asyncio
    async def test_cannot_claim_someone_elses_reward(self, client: AsyncClient):
        owner = await make_user("owner_r")
        thief = await make_user("thief")
        reward_id = await _reward(owner.id, "usdc", "1.00")

        response = await client.post(f"/api/rewards/claim/{reward_id}", headers=auth_headers(thief))
        assert response.status_code == 404
        assert response.json()["code"] == "reward_not_found"

    @pytest.mark.asyncio
    async def test_already_claimed_reward_only_in_history(self, client: AsyncClient):
        user = await make_user("historian")
        reward_id = await _reward(user.id, "xp", "50", claimed=True)
        headers = auth_headers(user)
        assert (await client.get("/api/rewards/pending", headers=headers)).json() == []
        assert [r["id"] for r in (await client.get("/api/rewards/history", headers=headers)).json()] == [reward_id]
