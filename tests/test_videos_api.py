"""Tests for video endpoints."""

import uuid

import pytest
from sqlalchemy import func, select

from videotube.db.models import Comment, Like, PlaylistVideo, Playlist, Video, WatchHistoryEntry
from videotube.engagement.targets import TargetKind, cache_key

MP4 = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.mark.asyncio
async def test_publish_video(client, auth, app, make_user):
    user = await make_user()

    response = await client.post(
        "/api/v1/videos",
        data={"title": "My trip", "description": "Mountains", "duration": "12.5"},
        files={
            "videoFile": ("trip.mp4", MP4, "video/mp4"),
            "thumbnail": ("trip.png", PNG, "image/png"),
        },
        headers=auth(user),
    )

    assert response.status_code == 201
    video = response.json()["data"]
    assert video["title"] == "My trip"
    assert video["duration"] == 12.5
    assert video["isPublished"] is True
    assert video["views"] == 0
    assert video["likes"] == 0
    assert video["owner"]["username"] == "alice"
    stored = app.state.media_storage.base_path / video["videoFile"].rsplit("/", 1)[-1]
    assert stored.read_bytes() == MP4


@pytest.mark.asyncio
async def test_publish_requires_files_and_fields(client, auth, make_user):
    user = await make_user()

    response = await client.post(
        "/api/v1/videos",
        data={"title": "", "description": "x"},
        headers=auth(user),
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/videos",
        data={"title": "t", "description": "d"},
        files={"thumbnail": ("t.png", PNG, "image/png")},
        headers=auth(user),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Video file and thumbnail are required"


@pytest.mark.asyncio
async def test_list_videos_paginates_and_hides_unpublished(client, auth, make_user, make_video):
    owner = await make_user("owner")
    viewer = await make_user("viewer")
    for i in range(15):
        await make_video(owner, f"video {i:02d}")
    await make_video(owner, "draft", published=False)

    response = await client.get(
        "/api/v1/videos", params={"page": 2, "limit": 10}, headers=auth(viewer)
    )

    assert response.status_code == 200
    page = response.json()["data"]
    assert page["totalItems"] == 15
    assert page["totalPages"] == 2
    assert len(page["items"]) == 5
    assert all(item["title"] != "draft" for item in page["items"])


@pytest.mark.asyncio
async def test_owner_sees_own_drafts_in_channel_listing(client, auth, make_user, make_video):
    owner = await make_user("owner")
    viewer = await make_user("viewer")
    await make_video(owner, "public")
    await make_video(owner, "draft", published=False)

    own = await client.get(
        "/api/v1/videos", params={"userId": owner.id}, headers=auth(owner)
    )
    other = await client.get(
        "/api/v1/videos", params={"userId": owner.id}, headers=auth(viewer)
    )

    assert own.json()["data"]["totalItems"] == 2
    assert other.json()["data"]["totalItems"] == 1


@pytest.mark.asyncio
async def test_list_videos_query_and_sort(client, auth, make_user, make_video):
    user = await make_user()
    await make_video(user, "Cooking pasta", views=5)
    await make_video(user, "Cooking rice", views=50)
    await make_video(user, "Hiking")

    response = await client.get(
        "/api/v1/videos",
        params={"query": "cooking", "sortBy": "views", "sortType": "asc"},
        headers=auth(user),
    )

    titles = [item["title"] for item in response.json()["data"]["items"]]
    assert titles == ["Cooking pasta", "Cooking rice"]


@pytest.mark.asyncio
async def test_list_videos_query_matches_wildcards_literally(client, auth, make_user, make_video):
    user = await make_user()
    await make_video(user, "100% organic")
    await make_video(user, "1000 subscribers")
    await make_video(user, "snake_case tips")
    await make_video(user, "snakecase tips")

    for query, expected in (("100%", ["100% organic"]), ("snake_", ["snake_case tips"])):
        response = await client.get("/api/v1/videos", params={"query": query}, headers=auth(user))
        titles = [item["title"] for item in response.json()["data"]["items"]]
        assert titles == expected, query


@pytest.mark.asyncio
async def test_list_videos_rejects_bad_arguments(client, auth, make_user):
    user = await make_user()

    for params in (
        {"sortBy": "password"},
        {"sortType": "sideways"},
        {"userId": "nope"},
        {"page": 0},
        {"limit": 1000},
    ):
        response = await client.get("/api/v1/videos", params=params, headers=auth(user))
        assert response.status_code == 400, params


@pytest.mark.asyncio
async def test_list_videos_random_sample(client, auth, make_user, make_video):
    user = await make_user()
    for i in range(6):
        await make_video(user, f"v{i}")

    response = await client.get(
        "/api/v1/videos",
        params={"random": "true", "limit": 4, "page": 3},
        headers=auth(user),
    )

    page = response.json()["data"]
    assert len(page["items"]) == 4
    assert len({item["id"] for item in page["items"]}) == 4
    assert page["totalItems"] == 6


@pytest.mark.asyncio
async def test_get_video_counts_view_and_records_history(client, auth, make_user, make_video, test_db):
    owner = await make_user("owner")
    viewer = await make_user("viewer")
    first = await make_video(owner, "first")
    second = await make_video(owner, "second")

    response = await client.get(f"/api/v1/videos/{first.id}", headers=auth(viewer))
    assert response.status_code == 200
    assert response.json()["data"]["views"] == 1

    await client.get(f"/api/v1/videos/{second.id}", headers=auth(viewer))
    response = await client.get(f"/api/v1/videos/{first.id}", headers=auth(viewer))
    assert response.json()["data"]["views"] == 2

    async with test_db() as db:
        entries = await db.scalar(
            select(func.count(WatchHistoryEntry.id)).where(
                WatchHistoryEntry.user_id == viewer.id
            )
        )
    assert entries == 2

    response = await client.get("/api/v1/users/history", headers=auth(viewer))
    history = response.json()["data"]["items"]
    assert [item["video"]["title"] for item in history] == ["first", "second"]
    assert history[0]["video"]["owner"]["username"] == "owner"


@pytest.mark.asyncio
async def test_unpublished_video_hidden_from_others(client, auth, make_user, make_video):
    owner = await make_user("owner")
    viewer = await make_user("viewer")
    draft = await make_video(owner, "draft", published=False)

    assert (await client.get(f"/api/v1/videos/{draft.id}", headers=auth(viewer))).status_code == 404
    assert (await client.get(f"/api/v1/videos/{draft.id}", headers=auth(owner))).status_code == 200


@pytest.mark.asyncio
async def test_get_video_bad_and_missing_id(client, auth, make_user):
    user = await make_user()

    response = await client.get("/api/v1/videos/not-a-uuid", headers=auth(user))
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid Video ID"

    response = await client.get(f"/api/v1/videos/{uuid.uuid4()}", headers=auth(user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_video_owner_only(client, auth, make_user, make_video):
    owner = await make_user("owner")
    other = await make_user("other")
    video = await make_video(owner, "before")

    response = await client.patch(
        f"/api/v1/videos/{video.id}", data={"title": "hijacked"}, headers=auth(other)
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/api/v1/videos/{video.id}", data={"title": "after"}, headers=auth(owner)
    )
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "after"

    response = await client.patch(f"/api/v1/videos/{video.id}", data={}, headers=auth(owner))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_toggle_publish(client, auth, make_user, make_video):
    owner = await make_user()
    video = await make_video(owner)

    response = await client.patch(
        f"/api/v1/videos/toggle/publish/{video.id}", headers=auth(owner)
    )

    assert response.status_code == 200
    assert response.json()["data"] == {"isPublished": False}


@pytest.mark.asyncio
async def test_delete_video_cascades(
    client, auth, app, make_user, make_video, make_comment, test_db
):
    owner = await make_user("owner")
    fan = await make_user("fan")
    video = await make_video(owner)
    comment = await make_comment(fan, video)

    await client.post(f"/api/v1/likes/toggle/v/{video.id}", headers=auth(fan))
    await client.post(f"/api/v1/likes/toggle/c/{comment.id}", headers=auth(owner))
    await client.get(f"/api/v1/videos/{video.id}", headers=auth(fan))
    playlist = (
        await client.post("/api/v1/playlist", json={"name": "Favs"}, headers=auth(fan))
    ).json()["data"]
    await client.patch(
        f"/api/v1/playlist/add/{video.id}/{playlist['id']}", headers=auth(fan)
    )

    response = await client.delete(f"/api/v1/videos/{video.id}", headers=auth(fan))
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/videos/{video.id}", headers=auth(owner))
    assert response.status_code == 200

    async with test_db() as db:
        for model in (Video, Comment, Like, PlaylistVideo, WatchHistoryEntry):
            assert await db.scalar(select(func.count(model.id))) == 0, model.__name__
        assert await db.scalar(select(func.count(Playlist.id))) == 1

    cache = app.state.like_cache
    assert await cache.get(cache_key(TargetKind.VIDEO, video.id)) is None
    assert await cache.get(cache_key(TargetKind.COMMENT, comment.id)) is None
