"""Tests for tweet endpoints."""

import pytest
from sqlalchemy import func, select

from videotube.db.models import Like, Tweet


@pytest.mark.asyncio
async def test_create_and_list_tweets(client, auth, make_user):
    user = await make_user()

    for content in ("one", "two"):
        response = await client.post(
            "/api/v1/tweets", json={"content": content}, headers=auth(user)
        )
        assert response.status_code == 201

    response = await client.get(f"/api/v1/tweets/user/{user.id}", headers=auth(user))

    page = response.json()["data"]
    assert page["totalItems"] == 2
    # Newest first
    assert [t["content"] for t in page["items"]] == ["two", "one"]
    assert page["items"][0]["owner"]["username"] == "alice"


@pytest.mark.asyncio
async def test_user_without_tweets_gets_empty_page(client, auth, make_user):
    user = await make_user()

    response = await client.get(f"/api/v1/tweets/user/{user.id}", headers=auth(user))

    assert response.status_code == 200
    assert response.json()["data"]["items"] == []
    assert response.json()["data"]["totalPages"] == 0


@pytest.mark.asyncio
async def test_blank_tweet_and_bad_user_id(client, auth, make_user):
    user = await make_user()

    response = await client.post("/api/v1/tweets", json={"content": ""}, headers=auth(user))
    assert response.status_code == 400

    response = await client.get("/api/v1/tweets/user/xyz", headers=auth(user))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_and_delete_owner_only(client, auth, make_user, make_tweet, test_db):
    author = await make_user("author")
    other = await make_user("other")
    tweet = await make_tweet(author, "hello")
    await client.post(f"/api/v1/likes/toggle/t/{tweet.id}", headers=auth(other))

    response = await client.patch(
        f"/api/v1/tweets/{tweet.id}", json={"content": "mine now"}, headers=auth(other)
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/api/v1/tweets/{tweet.id}", json={"content": "hello again"}, headers=auth(author)
    )
    assert response.status_code == 200
    assert response.json()["data"]["content"] == "hello again"
    assert response.json()["data"]["likes"] == 1

    assert (await client.delete(f"/api/v1/tweets/{tweet.id}", headers=auth(other))).status_code == 403
    assert (await client.delete(f"/api/v1/tweets/{tweet.id}", headers=auth(author))).status_code == 200

    async with test_db() as db:
        assert await db.get(Tweet, tweet.id) is None
        assert await db.scalar(select(func.count(Like.id))) == 0
