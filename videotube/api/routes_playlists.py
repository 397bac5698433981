"""Playlist endpoints."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.auth.dependencies import require_user
from videotube.db import crud
from videotube.db.models import Playlist, User
from videotube.db.session import get_session
from videotube.errors import InvalidArgument, NotFound
from videotube.ids import parse_id
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import CamelModel, Page, PlaylistDetail, playlist_out, video_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playlist", tags=["playlists"])


class PlaylistCreateRequest(CamelModel):
    name: str = ""
    description: str = ""


class PlaylistUpdateRequest(CamelModel):
    name: str | None = None
    description: str | None = None


async def _playlist_detail(db: AsyncSession, playlist_id: str, viewer_id: str) -> PlaylistDetail:
    detail = await crud.get_playlist_detail(db, playlist_id, viewer_id)
    if detail is None:
        raise NotFound("Playlist not found")
    playlist, total_videos, videos = detail
    summary = playlist_out(playlist, total_videos=total_videos)
    return PlaylistDetail(
        **summary.model_dump(),
        videos=[video_out(video, likes) for video, likes in videos],
    )


@router.post("")
async def create_playlist(
    body: PlaylistCreateRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    name = body.name.strip()
    if not name:
        raise InvalidArgument("Playlist name is required")

    playlist = Playlist(owner_id=user.id, name=name, description=body.description.strip())
    db.add(playlist)
    await db.commit()
    return api_response(
        await _playlist_detail(db, playlist.id, user.id),
        "Playlist created successfully",
        status.HTTP_201_CREATED,
    )


@router.get("/user/{user_id}")
async def list_user_playlists(
    user_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Playlists of a user with their video counts."""
    user_id = parse_id(user_id, "User ID")
    rows, total = await crud.list_user_playlists(db, user_id, params)
    items = [playlist_out(playlist, count) for playlist, count in rows]
    return api_response(
        Page.build(items, params.page, params.limit, total),
        "User playlists fetched successfully",
    )


@router.get("/{playlist_id}")
async def get_playlist(
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Playlist with its videos in playlist order."""
    playlist_id = parse_id(playlist_id, "Playlist ID")
    return api_response(
        await _playlist_detail(db, playlist_id, user.id), "Playlist fetched successfully"
    )


@router.patch("/{playlist_id}")
async def update_playlist(
    playlist_id: str,
    body: PlaylistUpdateRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    playlist = await crud.get_owned(db, Playlist, playlist_id, user.id, "Playlist", "update")

    name = body.name.strip() if body.name else None
    description = body.description.strip() if body.description else None
    if not (name or description):
        raise InvalidArgument("At least one of name or description is required")
    if name:
        playlist.name = name
    if description:
        playlist.description = description

    await crud.save(db, playlist)
    return api_response(
        await _playlist_detail(db, playlist.id, user.id), "Playlist updated successfully"
    )


@router.delete("/{playlist_id}")
async def delete_playlist(
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    playlist = await crud.get_owned(db, Playlist, playlist_id, user.id, "Playlist", "delete")
    await crud.delete_playlist(db, playlist)
    return api_response({}, "Playlist deleted successfully")


@router.patch("/add/{video_id}/{playlist_id}")
async def add_video_to_playlist(
    video_id: str,
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Append a video to the end of one of the caller's playlists."""
    video_id = parse_id(video_id, "Video ID")
    playlist = await crud.get_owned(db, Playlist, playlist_id, user.id, "Playlist", "update")
    await crud.add_video_to_playlist(db, playlist, video_id)
    logger.info(f"Video added to playlist: playlist={playlist.id}, video={video_id}")
    return api_response(
        await _playlist_detail(db, playlist.id, user.id),
        "Video added to playlist successfully",
    )


@router.patch("/remove/{video_id}/{playlist_id}")
async def remove_video_from_playlist(
    video_id: str,
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    video_id = parse_id(video_id, "Video ID")
    playlist = await crud.get_owned(db, Playlist, playlist_id, user.id, "Playlist", "update")
    await crud.remove_video_from_playlist(db, playlist, video_id)
    return api_response(
        await _playlist_detail(db, playlist.id, user.id),
        "Video removed from playlist successfully",
    )
