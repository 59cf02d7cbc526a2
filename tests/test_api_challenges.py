"""Tests for the HTTP API."""
import uuid

import pytest
from httpx import AsyncClient, ASGITransport

from tests.helpers import future_time


API_BASE_URL = "http://test"


def create_payload(**overrides):
    payload = {
        "game": "Ludo King",
        "bet_amount": 100,
        "scheduled_match_time": future_time().isoformat(),
        "player_count": 2,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_health(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["locks"] == "memory"


@pytest.mark.asyncio
async def test_authentication_required(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        missing = await client.get("/challenges")
        malformed = await client.get("/challenges", headers={"Authorization": "Token abc"})
        forged = await client.get("/challenges", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert missing.json()["detail"] == "missing_credentials"
    assert malformed.json()["detail"] == "invalid_authorization_header"
    assert forged.status_code == 401
    assert forged.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_full_challenge_flow(test_app, player_factory, admin_player, auth_headers):
    creator = await player_factory(balance=1000)
    opponent = await player_factory(balance=1000)

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        created = await client.post("/challenges", json=create_payload(), headers=auth_headers(creator))
        assert created.status_code == 201
        challenge = created.json()
        challenge_id = challenge["challenge_id"]
        assert challenge["status"] == "pending"
        assert challenge["total_pot"] == 150
        assert challenge["available_slots"] == 1
        assert challenge["scheduled_match_time"].endswith("Z")

        accepted = await client.post(f"/challenges/{challenge_id}/accept", headers=auth_headers(opponent))
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "accepted"

        forbidden = await client.post(
            f"/admin/challenges/{challenge_id}/start",
            json={"room_code": "LK-42"},
            headers=auth_headers(creator),
        )
        assert forbidden.status_code == 403
        assert forbidden.json()["detail"] == "admin_access_required"

        started = await client.post(
            f"/admin/challenges/{challenge_id}/start",
            json={"room_code": "LK-42"},
            headers=auth_headers(admin_player),
        )
        assert started.status_code == 200
        assert started.json()["admin_room_code"] == "LK-42"
        assert started.json()["status"] == "in-progress"

        proof = await client.post(
            f"/challenges/{challenge_id}/proof",
            json={"screenshot_ref": "https://cdn.example.com/lk.png"},
            headers=auth_headers(creator),
        )
        assert proof.status_code == 200

        resolved = await client.post(
            f"/admin/challenges/{challenge_id}/resolve",
            json={"winner_id": str(creator.player_id), "notes": "screenshot verified"},
            headers=auth_headers(admin_player),
        )
        assert resolved.status_code == 200
        settlement = resolved.json()
        assert settlement["already_settled"] is False
        assert settlement["platform_fee"] == 50
        assert settlement["payouts"] == [{"player_id": str(creator.player_id), "amount": 150}]
        assert settlement["challenge"]["status"] == "completed"
        assert settlement["challenge"]["winner_screenshot"] == "https://cdn.example.com/lk.png"

        repeated = await client.post(
            f"/admin/challenges/{challenge_id}/resolve",
            json={"winner_id": str(opponent.player_id)},
            headers=auth_headers(admin_player),
        )
        assert repeated.status_code == 200
        assert repeated.json()["already_settled"] is True
        assert repeated.json()["payouts"] == settlement["payouts"]

        ledger = await client.get(f"/admin/challenges/{challenge_id}/ledger", headers=auth_headers(admin_player))
        assert ledger.json() == {
            "challenge_id": challenge_id,
            "stakes": 200,
            "refunds": 0,
            "payouts": 150,
            "fee": 50,
            "held": 0,
            "balanced": True,
        }

        blank = await client.post(
            f"/challenges/{challenge_id}/dispute", json={"reason": ""}, headers=auth_headers(opponent)
        )
        assert blank.status_code == 422

        disputed = await client.post(
            f"/challenges/{challenge_id}/dispute",
            json={"reason": "Winner screenshot is from another match"},
            headers=auth_headers(opponent),
        )
        assert disputed.status_code == 200
        assert disputed.json()["is_disputed"] is True
        assert disputed.json()["dispute_reason"] == "Winner screenshot is from another match"
        assert disputed.json()["status"] == "completed"

        balance = await client.get("/player/balance", headers=auth_headers(creator))
        assert balance.json()["balance"] == 1050
        assert balance.json()["total_wins"] == 1

        history = await client.get("/player/transactions", headers=auth_headers(creator))
        types = sorted(t["type"] for t in history.json()["transactions"])
        assert types == ["payout", "stake_hold"]

        mine = await client.get("/challenges/mine", headers=auth_headers(opponent))
        assert [c["challenge_id"] for c in mine.json()] == [challenge_id]


@pytest.mark.asyncio
async def test_guard_failures_map_to_error_codes(test_app, player_factory, auth_headers):
    creator = await player_factory(balance=1000)
    poor = await player_factory(balance=5)

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        created = await client.post("/challenges", json=create_payload(game="PUBG"), headers=auth_headers(creator))
        challenge_id = created.json()["challenge_id"]

        own = await client.post(f"/challenges/{challenge_id}/accept", headers=auth_headers(creator))
        assert own.status_code == 409
        assert own.json()["detail"] == "already_joined"

        broke = await client.post(f"/challenges/{challenge_id}/accept", headers=auth_headers(poor))
        assert broke.status_code == 400
        assert broke.json()["detail"] == "insufficient_balance"

        conflict = await client.post("/challenges", json=create_payload(game="PUBG"), headers=auth_headers(creator))
        assert conflict.status_code == 409
        assert conflict.json()["detail"] == "scheduling_conflict"

        missing = await client.get(f"/challenges/{uuid.uuid4()}", headers=auth_headers(creator))
        assert missing.status_code == 404
        assert missing.json()["detail"] == "challenge_not_found"

        bad_tier = await client.post(
            "/challenges", json=create_payload(player_count=3), headers=auth_headers(creator)
        )
        assert bad_tier.status_code == 422

        ludo_squad = await client.post(
            "/challenges",
            json=create_payload(player_count=4, scheduled_match_time=future_time(hours=20).isoformat()),
            headers=auth_headers(creator),
        )
        assert ludo_squad.status_code == 400
        assert ludo_squad.json()["detail"] == "validation_error"

        cancelled = await client.post(f"/challenges/{challenge_id}/cancel", headers=auth_headers(creator))
        assert cancelled.status_code == 200
        assert cancelled.json()["cancel_reason"] == "challenger_cancelled"

        balance = await client.get("/player/balance", headers=auth_headers(creator))
        assert balance.json()["balance"] == 1000


@pytest.mark.asyncio
async def test_admin_challenge_and_room_code(test_app, player_factory, admin_player, auth_headers):
    joiner = await player_factory()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        created = await client.post(
            "/admin/challenges",
            json=create_payload(game="Free Fire", player_count=4),
            headers=auth_headers(admin_player),
        )
        assert created.status_code == 201
        challenge_id = created.json()["challenge_id"]
        assert created.json()["participants"] == []
        assert created.json()["is_admin_authored"] is True

        early = await client.post(
            f"/admin/challenges/{challenge_id}/room-code",
            json={"room_code": "FF-1"},
            headers=auth_headers(admin_player),
        )
        assert early.status_code == 409

        await client.post(f"/challenges/{challenge_id}/accept", headers=auth_headers(joiner))
        provided = await client.post(
            f"/admin/challenges/{challenge_id}/room-code",
            json={"room_code": "FF-1"},
            headers=auth_headers(admin_player),
        )
        assert provided.status_code == 200
        updated = await client.put(
            f"/admin/challenges/{challenge_id}/room-code",
            json={"room_code": "FF-2"},
            headers=auth_headers(admin_player),
        )
        assert updated.json()["admin_room_code"] == "FF-2"

        cancelled = await client.post(
            f"/admin/challenges/{challenge_id}/cancel",
            json={"reason": "lobby never filled"},
            headers=auth_headers(admin_player),
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["admin_notes"] == "lobby never filled"

        balance = await client.get("/player/balance", headers=auth_headers(joiner))
        assert balance.json()["balance"] == 1000


@pytest.mark.asyncio
async def test_admin_config_and_balance(test_app, player_factory, admin_player, auth_headers):
    player = await player_factory(balance=100)

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        config = await client.get("/admin/config", headers=auth_headers(admin_player))
        assert config.status_code == 200
        assert config.json()["values"]["max_bet_amount"] == 10000

        updated = await client.patch(
            "/admin/config",
            json={"key": "max_bet_amount", "value": 2000},
            headers=auth_headers(admin_player),
        )
        assert updated.status_code == 200
        assert updated.json()["value"] == 2000
        assert updated.json()["policy_version"] == config.json()["policy_version"] + 1

        rejected = await client.patch(
            "/admin/config",
            json={"key": "max_bet_amount", "value": -1},
            headers=auth_headers(admin_player),
        )
        assert rejected.status_code == 400

        adjusted = await client.post(
            f"/admin/players/{player.player_id}/balance",
            json={"amount": 250, "notes": "tournament prize"},
            headers=auth_headers(admin_player),
        )
        assert adjusted.status_code == 200
        assert adjusted.json()["new_balance"] == 350
        assert adjusted.json()["transaction"]["type"] == "admin_credit"

        unknown = await client.post(
            f"/admin/players/{uuid.uuid4()}/balance",
            json={"amount": 10},
            headers=auth_headers(admin_player),
        )
        assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_games_catalog_and_stats(test_app, player_factory, auth_headers):
    player = await player_factory()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url=API_BASE_URL) as client:
        catalog = await client.get("/games")
        assert catalog.status_code == 200
        assert {g["slug"] for g in catalog.json()} == {"ludo-king", "free-fire", "pubg"}

        stats = await client.get("/games/pubg/stats", headers=auth_headers(player))
        assert stats.status_code == 200
        assert stats.json()["game"] == "PUBG"

        mine = await client.get("/games/free-fire/me", headers=auth_headers(player))
        assert mine.json()["total_games"] == 0

        unknown = await client.get("/games/chess/leaderboard", headers=auth_headers(player))
        assert unknown.status_code == 404
        assert unknown.json()["detail"] == "game_not_found"
