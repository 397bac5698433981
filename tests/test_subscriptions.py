"""Tests for channel subscriptions."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import Delete, func, select

from videotube.db.models import Subscription
from videotube.engagement import SubscriptionService
from videotube.errors import InvalidArgument, NotFound
from videotube.pagination import PageParams


@pytest.mark.asyncio
async def test_toggle_subscribes_then_unsubscribes(db_session, make_user):
    channel = await make_user("channel")
    fan = await make_user("fan")
    service = SubscriptionService(db_session)

    first = await service.toggle(channel.id, fan.id)
    assert first.subscribed is True
    assert first.total_subscribers == 1
    assert await service.is_subscribed(fan.id, channel.id)

    second = await service.toggle(channel.id, fan.id)
    assert second.subscribed is False
    assert second.total_subscribers == 0
    assert not await service.is_subscribed(fan.id, channel.id)


@pytest.mark.asyncio
async def test_self_subscription_always_rejected(db_session, make_user):
    user = await make_user()
    service = SubscriptionService(db_session)

    for _ in range(2):
        with pytest.raises(InvalidArgument, match="your own channel"):
            await service.toggle(user.id, user.id)

    assert await service.count_subscribers(user.id) == 0


@pytest.mark.asyncio
async def test_unknown_channel_and_malformed_ids(db_session, make_user):
    fan = await make_user("fan")
    service = SubscriptionService(db_session)

    with pytest.raises(NotFound, match="Channel not found"):
        await service.toggle(str(uuid.uuid4()), fan.id)
    with pytest.raises(InvalidArgument):
        await service.toggle("bad-id", fan.id)


@pytest.mark.asyncio
async def test_listings_and_counts(db_session, make_user):
    channel = await make_user("channel")
    other = await make_user("other")
    fans = [await make_user(f"fan{i}") for i in range(3)]
    service = SubscriptionService(db_session)

    for fan in fans:
        await service.toggle(channel.id, fan.id)
    await service.toggle(other.id, fans[0].id)

    rows, total = await service.subscribers(channel.id, PageParams(page=1, limit=10))
    assert total == 3
    # Newest first
    assert [user.username for user, _ in rows] == ["fan2", "fan1", "fan0"]

    rows, total = await service.subscribed_channels(fans[0].id, PageParams(page=1, limit=10))
    assert total == 2
    assert {user.username for user, _ in rows} == {"channel", "other"}

    assert await service.count_subscribers(channel.id) == 3
    assert await service.count_subscriptions(fans[0].id) == 2


@pytest.mark.asyncio
async def test_subscription_endpoints(client, auth, make_user):
    channel = await make_user("channel")
    fan = await make_user("fan")

    response = await client.post(
        f"/api/v1/subscriptions/c/{channel.id}", headers=auth(fan)
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"subscribed": True, "totalSubscribers": 1}

    response = await client.get(
        f"/api/v1/subscriptions/c/{channel.id}", headers=auth(channel)
    )
    page = response.json()["data"]
    assert page["totalItems"] == 1
    assert page["items"][0]["profile"]["username"] == "fan"
    assert "subscribedAt" in page["items"][0]

    response = await client.get(f"/api/v1/subscriptions/u/{fan.id}", headers=auth(fan))
    assert response.json()["data"]["items"][0]["profile"]["username"] == "channel"


@pytest.mark.asyncio
async def test_self_subscription_endpoint_rejected(client, auth, make_user):
    user = await make_user()

    response = await client.post(f"/api/v1/subscriptions/c/{user.id}", headers=auth(user))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 400
    assert body["message"] == "You cannot subscribe to your own channel"


@pytest.mark.asyncio
async def test_lost_insert_race_reports_subscription(db_session, make_user, monkeypatch):
    channel = await make_user("channel")
    fan = await make_user("fan")
    db_session.add(Subscription(channel_id=channel.id, subscriber_id=fan.id))
    await db_session.commit()
    service = SubscriptionService(db_session)

    # The delete runs before another writer's insert commits
    execute = db_session.execute

    async def _execute(statement, *args, **kwargs):
        if isinstance(statement, Delete):
            return SimpleNamespace(rowcount=0)
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", _execute)

    result = await service.toggle(channel.id, fan.id)

    assert result.subscribed is True
    assert result.total_subscribers == 1


@pytest.mark.asyncio
async def test_channel_deleted_before_insert(db_session, make_user, monkeypatch):
    fan = await make_user("fan")
    service = SubscriptionService(db_session)
    monkeypatch.setattr(service, "_require_channel", AsyncMock())

    with pytest.raises(NotFound, match="Channel not found"):
        await service.toggle(str(uuid.uuid4()), fan.id)

    assert await db_session.scalar(select(func.count(Subscription.id))) == 0
