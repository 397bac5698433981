"""Like toggle and liked-content endpoints."""

from fastapi import APIRouter, Depends, Request

from videotube.api.dependencies import get_like_service
from videotube.api.limiting import limiter
from videotube.auth.dependencies import require_user
from videotube.db.models import User
from videotube.engagement import LikeService, TargetKind
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import LikeToggleResult, Page, video_out

router = APIRouter(prefix="/likes", tags=["likes"])


async def _toggle(likes: LikeService, kind: TargetKind, target_id: str, user: User):
    result = await likes.toggle(kind, target_id, user.id)
    message = "Liked successfully" if result.liked else "Like removed successfully"
    return api_response(
        LikeToggleResult(liked=result.liked, total_likes=result.total_likes), message
    )


@router.post("/toggle/v/{video_id}")
@limiter.limit("60/minute")
async def toggle_video_like(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    likes: LikeService = Depends(get_like_service),
):
    """
    Like or unlike a video.

    Rate limit: 60 requests per minute per IP.
    """
    return await _toggle(likes, TargetKind.VIDEO, video_id, user)


@router.post("/toggle/c/{comment_id}")
@limiter.limit("60/minute")
async def toggle_comment_like(
    request: Request,
    comment_id: str,
    user: User = Depends(require_user),
    likes: LikeService = Depends(get_like_service),
):
    return await _toggle(likes, TargetKind.COMMENT, comment_id, user)


@router.post("/toggle/t/{tweet_id}")
@limiter.limit("60/minute")
async def toggle_tweet_like(
    request: Request,
    tweet_id: str,
    user: User = Depends(require_user),
    likes: LikeService = Depends(get_like_service),
):
    return await _toggle(likes, TargetKind.TWEET, tweet_id, user)


@router.get("/videos")
async def get_liked_videos(
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    likes: LikeService = Depends(get_like_service),
):
    """Videos the caller liked, most recently liked first."""
    rows, total = await likes.liked_videos(user.id, params)
    items = [video_out(video, count) for video, count in rows]
    return api_response(
        Page.build(items, params.page, params.limit, total),
        "Liked videos fetched successfully",
    )


@router.get("/{kind}/{target_id}/count")
async def get_like_count(
    kind: TargetKind,
    target_id: str,
    user: User = Depends(require_user),
    likes: LikeService = Depends(get_like_service),
):
    total = await likes.like_count(kind, target_id)
    return api_response({"totalLikes": total}, "Like count fetched successfully")
