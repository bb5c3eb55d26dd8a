"""Integration tests: quest creation, joining, submission and management."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.orm.attributes import set_committed_value

from questclash.database import get_session_factory
from questclash.db.models import XPTransaction
from questclash.quests import service as quest_service
from tests.conftest import auth_headers, load_user, make_user, quest_payload


async def _create(client: AsyncClient, creator, **overrides) -> dict:
    response = await client.post("/api/quests", json=quest_payload(**overrides), headers=auth_headers(creator))
    assert response.status_code == 201, response.text
    return response.json()


def _as_utc(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed.replace(tzinfo=timezone.utc) if parsed.tzinfo is None else parsed


async def _submit(client: AsyncClient, quest_id: int, evidence: str, headers: dict[str, str]):
    return await client.post(f"/api/quests/{quest_id}/submit", json={"evidence": evidence}, headers=headers)


async def _ledger(user_id: int) -> list[tuple[str, int]]:
    async with get_session_factory()() as db:
        rows = (await db.execute(
            select(XPTransaction).where(XPTransaction.user_id == user_id).order_by(XPTransaction.id)
        )).scalars().all()
    return [(r.transaction_type, r.amount) for r in rows]


class TestCreateQuest:
    @pytest.mark.asyncio
    async def test_create_charges_creator(self, client: AsyncClient):
        creator = await make_user("creator", reward_points=1000)
        quest = await _create(client, creator)

        assert quest["creator_cost"] == 500
        assert quest["join_cost"] == 50
        assert quest["status"] == "active"
        assert quest["participants"] == 0
        assert quest["created_by"] == "creator"
        assert quest["created_by_id"] == creator.id
        assert quest["usdc_reward"] == 5.0

        stored = await load_user(creator.id)
        assert stored.reward_points == 500
        assert stored.total_quests == 1
        assert "quest_creator" in stored.badges
        assert await _ledger(creator.id) == [("quest_creation_fee", -500)]

    @pytest.mark.asyncio
    async def test_quest_round_trip(self, client: AsyncClient):
        creator = await make_user("roundtrip", reward_points=1000)
        created = await _create(
            client,
            creator,
            max_participants=25,
            image="https://example.com/run.png",
            voucher_reward="Free smoothie",
        )

        response = await client.get(f"/api/quests/{created['id']}")
        assert response.status_code == 200
        fetched = response.json()
        for field in ("title", "description", "category", "difficulty", "tier", "duration",
                      "requirements", "verification_method", "image", "xp_reward", "usdc_reward",
                      "voucher_reward", "max_participants", "creator_cost", "join_cost",
                      "created_by", "created_by_id", "status", "participants"):
            assert fetched[field] == created[field], field
        for field in ("start_date", "end_date"):
            assert _as_utc(fetched[field]) == _as_utc(created[field]) == _as_utc(quest_payload()[field])
        assert fetched["requirements"] == ["GPS tracking enabled", "Complete before 9 AM"]
        assert fetched["image"] == "https://example.com/run.png"
        assert fetched["voucher_reward"] == "Free smoothie"
        assert fetched["created_by"] == "roundtrip"
        assert fetched["join_cost"] == 50

    @pytest.mark.asyncio
    async def test_create_without_points_fails(self, client: AsyncClient):
        creator = await make_user("pauper", reward_points=0)
        response = await client.post("/api/quests", json=quest_payload(), headers=auth_headers(creator))
        assert response.status_code == 400
        assert response.json()["code"] == "insufficient_funds"

        stored = await load_user(creator.id)
        assert stored.total_quests == 0
        assert (await client.get("/api/quests")).json() == []

    @pytest.mark.asyncio
    async def test_create_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/quests", json=quest_payload())
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_payload(self, client: AsyncClient):
        creator = await make_user("sloppy", reward_points=1000)
        response = await client.post(
            "/api/quests", json=quest_payload(category="gaming"), headers=auth_headers(creator)
        )
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_cost_preview(self, client: AsyncClient):
        user = await make_user("previewer", reward_points=200)
        response = await client.get("/api/quests/me/cost", headers=auth_headers(user))
        assert response.json() == {"reward_points": 200, "creator_cost": 100, "join_cost": 10}


class TestJoinQuest:
    @pytest.mark.asyncio
    async def test_join_costs_a_tenth_of_creation(self, client: AsyncClient):
        """Creator with 200 points: creation costs 100, joining costs 10."""
        creator = await make_user("host", reward_points=200)
        quest = await _create(client, creator)
        assert quest["creator_cost"] == 100
        assert quest["join_cost"] == 10

        poor = await make_user("poor", reward_points=5)
        response = await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(poor))
        assert response.status_code == 400
        assert response.json()["code"] == "insufficient_funds"
        assert (await load_user(poor.id)).reward_points == 5

        joiner = await make_user("joiner", reward_points=15)
        response = await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(joiner))
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["participants"] == 1
        assert data["reward_points"] == 5
        assert data["participation"]["status"] == "joined"
        assert data["participation"]["evidence_submitted"] is False

        stored = await load_user(joiner.id)
        assert stored.reward_points == 5
        assert stored.total_quests == 1
        assert await _ledger(joiner.id) == [("quest_join_fee", -10)]

    @pytest.mark.asyncio
    async def test_join_twice_conflicts_and_charges_once(self, client: AsyncClient):
        creator = await make_user("host2", reward_points=1000)
        quest = await _create(client, creator)
        joiner = await make_user("eager", reward_points=500)

        first = await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(joiner))
        assert first.status_code == 200
        second = await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(joiner))
        assert second.status_code == 409
        assert second.json()["code"] == "already_joined"

        assert (await load_user(joiner.id)).reward_points == 450
        assert (await client.get(f"/api/quests/{quest['id']}")).json()["participants"] == 1

    @pytest.mark.asyncio
    async def test_full_quest(self, client: AsyncClient):
        creator = await make_user("host3", reward_points=1000)
        quest = await _create(client, creator, max_participants=1)
        first = await make_user("first_in", reward_points=500)
        late = await make_user("late", reward_points=500)

        assert (await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(first))).status_code == 200
        response = await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(late))
        assert response.status_code == 409
        assert response.json()["code"] == "quest_full"
        assert (await load_user(late.id)).reward_points == 500
        assert (await client.get(f"/api/quests/{quest['id']}")).json()["participants"] == 1
        assert await _ledger(late.id) == []

    @pytest.mark.asyncio
    async def test_unique_participation_without_precheck(self, client: AsyncClient, monkeypatch):
        creator = await make_user("host5", reward_points=1000)
        quest = await _create(client, creator)
        joiner = await make_user("racer", reward_points=500)
        headers = auth_headers(joiner)
        assert (await client.post(f"/api/quests/{quest['id']}/join", headers=headers)).status_code == 200

        async def not_joined(*_args, **_kwargs):
            return None

        monkeypatch.setattr("questclash.quests.service.get_participation_status", not_joined)
        response = await client.post(f"/api/quests/{quest['id']}/join", headers=headers)
        assert response.status_code == 409
        assert response.json()["code"] == "already_joined"

        assert (await load_user(joiner.id)).reward_points == 450
        assert await _ledger(joiner.id) == [("quest_join_fee", -50)]
        assert (await client.get(f"/api/quests/{quest['id']}")).json()["participants"] == 1

    @pytest.mark.asyncio
    async def test_capacity_enforced_by_conditional_increment(self, client: AsyncClient, monkeypatch):
        creator = await make_user("host6", reward_points=1000)
        quest = await _create(client, creator, max_participants=1)
        first = await make_user("seat_taken", reward_points=500)
        late = await make_user("squeezer", reward_points=500)
        assert (await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(first))).status_code == 200

        real_get_quest = quest_service.get_quest

        async def stale_get_quest(db, quest_id, **kwargs):
            found = await real_get_quest(db, quest_id, **kwargs)
            if not kwargs.get("refresh"):
                set_committed_value(found, "participants", 0)
            return found

        monkeypatch.setattr(quest_service, "get_quest", stale_get_quest)
        response = await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(late))
        monkeypatch.undo()

        assert response.status_code == 409
        assert response.json()["code"] == "quest_full"
        assert (await load_user(late.id)).reward_points == 500
        assert await _ledger(late.id) == []
        assert (await client.get(f"/api/quests/{quest['id']}")).json()["participants"] == 1

    @pytest.mark.asyncio
    async def test_join_missing_quest(self, client: AsyncClient):
        user = await make_user("lost", reward_points=500)
        response = await client.post("/api/quests/9999/join", headers=auth_headers(user))
        assert response.status_code == 404
        assert response.json()["code"] == "quest_not_found"

    @pytest.mark.asyncio
    async def test_active_quests_and_participation(self, client: AsyncClient):
        creator = await make_user("host4", reward_points=1000)
        quest = await _create(client, creator)
        joiner = await make_user("tracker", reward_points=500)
        headers = auth_headers(joiner)

        response = await client.get(f"/api/quests/{quest['id']}/participation", headers=headers)
        assert response.status_code == 200
        assert response.json() is None

        await client.post(f"/api/quests/{quest['id']}/join", headers=headers)
        participation = (await client.get(f"/api/quests/{quest['id']}/participation", headers=headers)).json()
        assert participation["status"] == "joined"

        active = (await client.get("/api/quests/me/active", headers=headers)).json()
        assert len(active) == 1
        assert active[0]["quest"]["id"] == quest["id"]
        assert active[0]["participation"]["user_id"] == joiner.id


class TestSubmitEvidence:
    @pytest.mark.asyncio
    async def test_submit_flow(self, client: AsyncClient):
        creator = await make_user("host5", reward_points=1000)
        quest = await _create(client, creator)
        runner = await make_user("submitter", reward_points=500)
        headers = auth_headers(runner)

        response = await _submit(client, quest["id"], "strava link", headers)
        assert response.status_code == 409
        assert response.json()["code"] == "not_joined"

        await client.post(f"/api/quests/{quest['id']}/join", headers=headers)

        response = await _submit(client, quest["id"], "   ", headers)
        assert response.status_code == 422

        response = await _submit(client, quest["id"], "  https://strava.com/run/1  ", headers)
        assert response.status_code == 201
        submission = response.json()
        assert submission["status"] == "pending"
        assert submission["evidence"] == "https://strava.com/run/1"
        assert submission["votes_for"] == 0
        assert submission["votes_against"] == 0

        participation = (await client.get(f"/api/quests/{quest['id']}/participation", headers=headers)).json()
        assert participation["status"] == "submitted"
        assert participation["evidence_submitted"] is True

        response = await _submit(client, quest["id"], "again", headers)
        assert response.status_code == 409
        assert response.json()["code"] == "already_submitted"


class TestBrowseQuests:
    @pytest.mark.asyncio
    async def test_filters_and_search(self, client: AsyncClient):
        creator = await make_user("curator", reward_points=10_000)
        await _create(client, creator)
        await _create(
            client, creator,
            title="Learn 50 Spanish Words", description="Master fifty vocabulary words",
            category="learning", difficulty="easy", tier="bronze", verification_method="photo",
        )

        assert len((await client.get("/api/quests")).json()) == 2
        learning = (await client.get("/api/quests", params={"category": "learning"})).json()
        assert [q["title"] for q in learning] == ["Learn 50 Spanish Words"]
        found = (await client.get("/api/quests", params={"search": "spanish"})).json()
        assert [q["title"] for q in found] == ["Learn 50 Spanish Words"]
        assert (await client.get("/api/quests", params={"search": "100%"})).json() == []
        assert len((await client.get("/api/quests", params={"limit": 1})).json()) == 1

        mine = (await client.get("/api/quests/user/curator")).json()
        assert len(mine) == 2

    @pytest.mark.asyncio
    async def test_missing_quest(self, client: AsyncClient):
        response = await client.get("/api/quests/424242")
        assert response.status_code == 404
        assert response.json() == {"detail": "Quest not found", "code": "quest_not_found"}


class TestManageQuest:
    @pytest.mark.asyncio
    async def test_only_creator_can_update(self, client: AsyncClient):
        creator = await make_user("owner", reward_points=1000)
        quest = await _create(client, creator)
        stranger = await make_user("stranger", reward_points=1000)

        response = await client.put(f"/api/quests/{quest['id']}", json={"title": "Hijacked quest"},
                                    headers=auth_headers(stranger))
        assert response.status_code == 403

        response = await client.put(f"/api/quests/{quest['id']}", json={"title": "Evening Run Challenge"},
                                    headers=auth_headers(creator))
        assert response.status_code == 200
        assert response.json()["title"] == "Evening Run Challenge"
        assert response.json()["creator_cost"] == quest["creator_cost"]

    @pytest.mark.asyncio
    async def test_update_rejects_inverted_dates(self, client: AsyncClient):
        creator = await make_user("timekeeper", reward_points=1000)
        quest = await _create(client, creator)
        response = await client.put(
            f"/api/quests/{quest['id']}", json={"end_date": "2026-10-01T00:00:00Z"}, headers=auth_headers(creator)
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_refunds_unjoined_quest(self, client: AsyncClient):
        creator = await make_user("remover", reward_points=1000)
        quest = await _create(client, creator)

        response = await client.delete(f"/api/quests/{quest['id']}", headers=auth_headers(creator))
        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": "Quest deleted", "refunded": 500}
        assert (await client.get(f"/api/quests/{quest['id']}")).status_code == 404
        assert (await load_user(creator.id)).reward_points == 1000
        assert await _ledger(creator.id) == [("quest_creation_fee", -500), ("quest_creation_refund", 500)]

    @pytest.mark.asyncio
    async def test_delete_blocked_once_joined(self, client: AsyncClient):
        creator = await make_user("keeper", reward_points=1000)
        quest = await _create(client, creator)
        joiner = await make_user("blocker", reward_points=500)
        await client.post(f"/api/quests/{quest['id']}/join", headers=auth_headers(joiner))

        response = await client.delete(f"/api/quests/{quest['id']}", headers=auth_headers(creator))
        assert response.status_code == 409
        assert (await client.get(f"/api/quests/{quest['id']}")).status_code == 200
