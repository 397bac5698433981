"""Video upload, listing and management endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.api.dependencies import get_like_service, get_media_storage
from videotube.api.limiting import limiter
from videotube.auth.dependencies import require_user
from videotube.config import get_settings
from videotube.db import crud
from videotube.db.models import User, Video
from videotube.db.session import get_session
from videotube.engagement import LikeService, TargetKind
from videotube.errors import InvalidArgument, NotFound
from videotube.ids import parse_id
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import Page, video_out
from videotube.storage import MediaStorage, discard_media, store_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])


async def _video_detail(db: AsyncSession, video_id: str):
    detail = await crud.get_video_detail(db, video_id)
    if detail is None:
        raise NotFound("Video not found")
    return video_out(*detail)


@router.get("")
async def list_videos(
    params: PageParams = Depends(page_params),
    query: str | None = None,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
    sort_by: Annotated[str | None, Query(alias="sortBy")] = None,
    sort_type: Annotated[str | None, Query(alias="sortType")] = None,
    random: bool = False,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    List published videos.

    Args:
        query: Case-insensitive substring of the title
        user_id: Only videos of this channel; the caller's own channel includes unpublished ones
        sort_by: createdAt, title, views or duration
        sort_type: asc or desc
        random: Return a random sample of ``limit`` videos
    """
    rows, total = await crud.list_videos(
        db,
        params,
        viewer_id=user.id,
        query=query.strip() if query else None,
        owner_id=user_id,
        sort_by=sort_by,
        sort_type=sort_type,
        random=random,
    )
    items = [video_out(video, likes) for video, likes in rows]
    return api_response(
        Page.build(items, params.page, params.limit, total),
        "Videos fetched successfully",
    )


@router.post("")
@limiter.limit("10/minute")
async def publish_video(
    request: Request,
    title: Annotated[str, Form()] = "",
    description: Annotated[str, Form()] = "",
    duration: Annotated[float | None, Form()] = None,
    video_file: Annotated[UploadFile | None, File(alias="videoFile")] = None,
    thumbnail: Annotated[UploadFile | None, File()] = None,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    """
    Upload a video with its thumbnail and publish it.

    Rate limit: 10 requests per minute per IP.
    """
    title, description = title.strip(), description.strip()
    if not title or not description:
        raise InvalidArgument("Title and description are required")
    if video_file is None or thumbnail is None:
        raise InvalidArgument("Video file and thumbnail are required")
    if duration is not None and duration < 0:
        raise InvalidArgument("Duration cannot be negative")

    max_bytes = get_settings().max_upload_mb * 1024 * 1024
    stored_video = await store_upload(storage, video_file, "video", max_bytes)
    thumbnail_url = None
    try:
        thumbnail_url = (await store_upload(storage, thumbnail, "image", max_bytes)).url
        video = await crud.create_video(
            db,
            owner_id=user.id,
            title=title,
            description=description,
            video_file=stored_video.url,
            thumbnail=thumbnail_url,
            duration=stored_video.duration or duration or 0.0,
        )
    except Exception:
        await discard_media(storage, stored_video.url)
        await discard_media(storage, thumbnail_url)
        raise

    logger.info(f"Video published: video_id={video.id}, owner={user.id}")
    return api_response(
        await _video_detail(db, video.id),
        "Video published successfully",
        status.HTTP_201_CREATED,
    )


@router.get("/{video_id}")
async def get_video(
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Video detail; counts a view and records it in the caller's watch history."""
    video_id = parse_id(video_id, "Video ID")
    video = await db.get(Video, video_id)
    if video is None or (not video.is_published and video.owner_id != user.id):
        raise NotFound("Video not found")

    await crud.record_view(db, video_id, user.id)
    return api_response(await _video_detail(db, video_id), "Video fetched successfully")


@router.patch("/{video_id}")
async def update_video(
    video_id: str,
    title: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    thumbnail: Annotated[UploadFile | None, File()] = None,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    """Update title, description or thumbnail of the caller's video."""
    video = await crud.get_owned(db, Video, video_id, user.id, "Video", "update")

    title = title.strip() if title else None
    description = description.strip() if description else None
    has_thumbnail = thumbnail is not None and bool(thumbnail.filename)
    if not (title or description or has_thumbnail):
        raise InvalidArgument("At least one of title, description or thumbnail is required")

    previous_thumbnail = None
    if has_thumbnail:
        max_bytes = get_settings().max_upload_mb * 1024 * 1024
        media = await store_upload(storage, thumbnail, "image", max_bytes)
        previous_thumbnail = video.thumbnail
        video.thumbnail = media.url
    if title:
        video.title = title
    if description:
        video.description = description

    await crud.save(db, video)
    await discard_media(storage, previous_thumbnail)
    return api_response(await _video_detail(db, video.id), "Video updated successfully")


@router.delete("/{video_id}")
async def delete_video(
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
    likes: LikeService = Depends(get_like_service),
):
    """Delete the caller's video with its comments, likes and list entries."""
    video = await crud.get_owned(db, Video, video_id, user.id, "Video", "delete")
    media = (video.video_file, video.thumbnail)
    video_id = video.id

    comment_ids = await crud.delete_video(db, video)
    await likes.forget(TargetKind.VIDEO, [video_id])
    await likes.forget(TargetKind.COMMENT, comment_ids)
    for url in media:
        await discard_media(storage, url)

    logger.info(f"Video deleted: video_id={video_id}, owner={user.id}")
    return api_response({}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}")
async def toggle_publish_status(
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    video = await crud.get_owned(db, Video, video_id, user.id, "Video", "update")
    video.is_published = not video.is_published
    await crud.save(db, video)
    return api_response(
        {"isPublished": video.is_published}, "Video publish status toggled successfully"
    )
