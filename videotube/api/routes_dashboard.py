"""Channel dashboard endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.auth.dependencies import require_user
from videotube.db import crud
from videotube.db.models import User
from videotube.db.session import get_session
from videotube.errors import NotFound
from videotube.ids import parse_id
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import ChannelStats, Page, video_out

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


async def _require_channel(db: AsyncSession, channel_id: str) -> str:
    channel_id = parse_id(channel_id, "Channel ID")
    if await crud.get_user_by_id(db, channel_id) is None:
        raise NotFound("Channel not found")
    return channel_id


@router.get("/stats/{channel_id}")
async def get_channel_stats(
    channel_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Totals for a channel.

    Returns:
        Video, view, like and subscriber totals; likes count only likes on the channel's videos
    """
    channel_id = await _require_channel(db, channel_id)
    stats = await crud.get_channel_stats(db, channel_id)
    return api_response(ChannelStats(**stats), "Channel stats fetched successfully")


@router.get("/videos/{channel_id}")
async def get_channel_videos(
    channel_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    channel_id = await _require_channel(db, channel_id)
    rows, total = await crud.list_channel_videos(db, channel_id, params)
    items = [video_out(video, likes) for video, likes in rows]
    return api_response(
        Page.build(items, params.page, params.limit, total),
        "Channel videos fetched successfully",
    )
