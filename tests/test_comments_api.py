"""Tests for comment endpoints."""

import uuid

import pytest
from sqlalchemy import func, select

from videotube.db.models import Comment, Like


@pytest.mark.asyncio
async def test_add_and_list_comments(client, auth, make_user, make_video):
    owner = await make_user("owner")
    fan = await make_user("fan")
    video = await make_video(owner)

    response = await client.post(
        f"/api/v1/comments/{video.id}", json={"content": "First!"}, headers=auth(fan)
    )
    assert response.status_code == 201
    created = response.json()["data"]
    assert created["content"] == "First!"
    assert created["videoId"] == video.id
    assert created["owner"]["username"] == "fan"

    await client.post(
        f"/api/v1/comments/{video.id}", json={"content": "Second"}, headers=auth(owner)
    )
    await client.post(f"/api/v1/likes/toggle/c/{created['id']}", headers=auth(owner))

    response = await client.get(f"/api/v1/comments/{video.id}", headers=auth(fan))
    page = response.json()["data"]
    assert page["totalItems"] == 2
    # Oldest first
    assert [c["content"] for c in page["items"]] == ["First!", "Second"]
    assert [c["likes"] for c in page["items"]] == [1, 0]


@pytest.mark.asyncio
async def test_comment_on_missing_video(client, auth, make_user):
    user = await make_user()
    missing = uuid.uuid4()

    response = await client.post(
        f"/api/v1/comments/{missing}", json={"content": "hi"}, headers=auth(user)
    )
    assert response.status_code == 404

    response = await client.get(f"/api/v1/comments/{missing}", headers=auth(user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_blank_comment_rejected(client, auth, make_user, make_video):
    user = await make_user()
    video = await make_video(user)

    response = await client.post(
        f"/api/v1/comments/{video.id}", json={"content": "   "}, headers=auth(user)
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_non_owner_cannot_update_or_delete(client, auth, make_user, make_video, make_comment, test_db):
    author = await make_user("author")
    other = await make_user("other")
    video = await make_video(author)
    comment = await make_comment(author, video, "original")

    response = await client.patch(
        f"/api/v1/comments/c/{comment.id}", json={"content": "edited"}, headers=auth(other)
    )
    assert response.status_code == 403
    assert response.json()["message"] == "You can only update your own comments"

    # Ownership is checked before the payload
    response = await client.patch(
        f"/api/v1/comments/c/{comment.id}", json={"content": ""}, headers=auth(other)
    )
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/comments/c/{comment.id}", headers=auth(other))
    assert response.status_code == 403

    async with test_db() as db:
        stored = await db.get(Comment, comment.id)
    assert stored.content == "original"


@pytest.mark.asyncio
async def test_owner_updates_and_deletes(client, auth, app, make_user, make_video, make_comment, test_db):
    author = await make_user("author")
    fan = await make_user("fan")
    video = await make_video(author)
    comment = await make_comment(author, video)
    await client.post(f"/api/v1/likes/toggle/c/{comment.id}", headers=auth(fan))

    response = await client.patch(
        f"/api/v1/comments/c/{comment.id}", json={"content": "edited"}, headers=auth(author)
    )
    assert response.status_code == 200
    assert response.json()["data"]["content"] == "edited"
    assert response.json()["data"]["likes"] == 1

    response = await client.delete(f"/api/v1/comments/c/{comment.id}", headers=auth(author))
    assert response.status_code == 200

    async with test_db() as db:
        assert await db.get(Comment, comment.id) is None
        assert await db.scalar(select(func.count(Like.id))) == 0
    assert len(app.state.like_cache) == 0
