"""HTTP-level tests for the listing, trending and activity endpoints."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock

from promoboard.config import settings
from promoboard.main import app
from promoboard.services.background import drain_background_tasks


def _headers(user_id=None) -> dict:
    return {"X-User-Id": str(user_id or uuid.uuid4())}


@pytest.mark.asyncio
async def test_vote_then_duplicate_is_conflict(client, make_listing):
    listing_id = await make_listing()
    headers = _headers()

    first = await client.post(f"/api/v1/listings/{listing_id}/vote", headers=headers)
    second = await client.post(f"/api/v1/listings/{listing_id}/vote", headers=headers)

    assert first.status_code == 200
    assert first.json()["accepted"] is True
    assert first.json()["vote_date"] == datetime.now(timezone.utc).date().isoformat()
    assert second.status_code == 409
    assert "already voted" in second.json()["detail"]


@pytest.mark.asyncio
async def test_missing_or_malformed_identity_is_unauthorized(client, make_listing):
    listing_id = await make_listing()

    missing = await client.post(f"/api/v1/listings/{listing_id}/vote")
    malformed = await client.post(
        f"/api/v1/listings/{listing_id}/vote", headers={"X-User-Id": "not-a-uuid"}
    )

    assert missing.status_code == 401
    assert malformed.status_code == 401


@pytest.mark.asyncio
async def test_vote_unknown_listing_is_not_found(client):
    response = await client.post(f"/api/v1/listings/{uuid.uuid4()}/vote", headers=_headers())
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bump_then_cooldown_conflict(client, make_listing):
    listing_id = await make_listing(tier="gold")
    headers = _headers()

    first = await client.post(f"/api/v1/listings/{listing_id}/bump", headers=headers)
    second = await client.post(f"/api/v1/listings/{listing_id}/bump", headers=headers)

    assert first.status_code == 200
    assert "3 hours" in first.json()["message"]
    assert second.status_code == 409
    body = second.json()
    next_eligible_at = datetime.fromisoformat(body["next_eligible_at"])
    assert next_eligible_at == datetime.fromisoformat(first.json()["next_eligible_at"])
    assert next_eligible_at - datetime.now(timezone.utc) <= timedelta(hours=3)


@pytest.mark.asyncio
async def test_bump_unknown_listing_is_not_found(client):
    response = await client.post(f"/api/v1/listings/{uuid.uuid4()}/bump", headers=_headers())
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_events_and_member_snapshot(client, make_listing):
    listing_id = await make_listing()
    headers = _headers()

    event = await client.post(
        f"/api/v1/listings/{listing_id}/events", json={"event_type": "view"}, headers=headers
    )
    bad_event = await client.post(
        f"/api/v1/listings/{listing_id}/events", json={"event_type": "click"}, headers=headers
    )
    members = await client.put(
        f"/api/v1/listings/{listing_id}/members", json={"member_count": 250}, headers=headers
    )
    missing = await client.put(
        f"/api/v1/listings/{uuid.uuid4()}/members", json={"member_count": 1}, headers=headers
    )

    assert event.status_code == 202
    assert bad_event.status_code == 422
    assert members.status_code == 200
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_recompute_and_list_trending(client, make_listing):
    hot = await make_listing(name="Hot")
    cold = await make_listing(name="Cold")
    for _ in range(3):
        await client.post(f"/api/v1/listings/{hot}/vote", headers=_headers())
    await client.post(f"/api/v1/listings/{cold}/vote", headers=_headers())
    await drain_background_tasks()

    recompute = await client.post("/api/v1/trending/recompute", json={}, headers=_headers())
    assert recompute.status_code == 200
    assert recompute.json()["scored"] == 2

    response = await client.get("/api/v1/trending", headers=_headers())
    assert response.status_code == 200
    entries = response.json()["trending"]
    assert [e["listing_id"] for e in entries] == [str(hot), str(cold)]
    assert entries[0]["vote_growth"] == 3

    past = await client.get("/api/v1/trending", params={"date": "2000-01-01"}, headers=_headers())
    assert past.json()["trending"] == []


@pytest.mark.asyncio
async def test_activity_feed_shows_votes(client, make_listing):
    listing_id = await make_listing(name="Cozy Cafe")
    voter = uuid.uuid4()

    await client.post(f"/api/v1/listings/{listing_id}/vote", headers=_headers(voter))
    await drain_background_tasks()

    response = await client.get("/api/v1/activity", headers=_headers())
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    activity = body["activities"][0]
    assert activity["activity_type"] == "vote_cast"
    assert activity["user_id"] == str(voter)
    assert activity["target_id"] == str(listing_id)


@pytest.mark.asyncio
async def test_track_activity(client):
    user_id = uuid.uuid4()
    target = uuid.uuid4()

    created = await client.post(
        "/api/v1/activity",
        json={"activity_type": "review_posted", "target_type": "bot", "target_id": str(target)},
        headers=_headers(user_id),
    )
    feed = await client.get("/api/v1/activity", params={"limit": 500}, headers=_headers())

    assert created.status_code == 201
    assert created.json()["user_id"] == str(user_id)
    assert [a["activity_type"] for a in feed.json()["activities"]] == ["review_posted"]


@pytest.mark.asyncio
async def test_rate_limit_exceeded(client, make_listing):
    listing_id = await make_listing()
    app.state.redis.incr = AsyncMock(return_value=10_000)

    response = await client.post(f"/api/v1/listings/{listing_id}/vote", headers=_headers())

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"


@pytest.mark.asyncio
async def test_rate_limiter_fails_open(client, make_listing):
    listing_id = await make_listing()
    app.state.redis.incr = AsyncMock(side_effect=ConnectionError("redis down"))

    response = await client.post(f"/api/v1/listings/{listing_id}/vote", headers=_headers())

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_recompute_rejects_closed_day(client):
    response = await client.post(
        "/api/v1/trending/recompute", json={"as_of": "2000-01-01"}, headers=_headers()
    )

    assert response.status_code == 422
    assert "closed" in response.json()["detail"]


@pytest.mark.asyncio
async def test_trending_default_limit_comes_from_settings(client, make_listing, monkeypatch):
    for name in ("One", "Two", "Three"):
        listing_id = await make_listing(name=name)
        await client.post(f"/api/v1/listings/{listing_id}/vote", headers=_headers())
    await drain_background_tasks()
    await client.post("/api/v1/trending/recompute", json={}, headers=_headers())
    monkeypatch.setattr(settings, "trending_top_limit", 2)

    default = await client.get("/api/v1/trending", headers=_headers())
    explicit = await client.get("/api/v1/trending", params={"limit": 3}, headers=_headers())

    assert len(default.json()["trending"]) == 2
    assert len(explicit.json()["trending"]) == 3
