"""Comment endpoints for videos."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.api.dependencies import get_like_service
from videotube.api.limiting import limiter
from videotube.auth.dependencies import require_user
from videotube.db import crud
from videotube.db.models import Comment, User, Video
from videotube.db.session import get_session
from videotube.engagement import LikeService, TargetKind
from videotube.errors import InvalidArgument, NotFound
from videotube.ids import parse_id
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import CamelModel, Page, comment_out

router = APIRouter(prefix="/comments", tags=["comments"])


class CommentRequest(CamelModel):
    content: str = ""


def _require_content(body: CommentRequest) -> str:
    content = body.content.strip()
    if not content:
        raise InvalidArgument("Comment content is required")
    return content


async def _comment_detail(db: AsyncSession, comment_id: str):
    detail = await crud.get_comment_detail(db, comment_id)
    if detail is None:
        raise NotFound("Comment not found")
    return comment_out(*detail)


@router.get("/{video_id}")
async def list_video_comments(
    video_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Comments of a video, oldest first, with like counts."""
    video_id = parse_id(video_id, "Video ID")
    if await db.get(Video, video_id) is None:
        raise NotFound("Video not found")

    rows, total = await crud.list_comments(db, video_id, params)
    items = [comment_out(comment, likes) for comment, likes in rows]
    return api_response(
        Page.build(items, params.page, params.limit, total),
        "Comments fetched successfully",
    )


@router.post("/{video_id}")
@limiter.limit("30/minute")
async def add_comment(
    request: Request,
    video_id: str,
    body: CommentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Comment on a video.

    Rate limit: 30 requests per minute per IP.
    """
    video_id = parse_id(video_id, "Video ID")
    content = _require_content(body)
    if await db.get(Video, video_id) is None:
        raise NotFound("Video not found")

    comment = Comment(video_id=video_id, owner_id=user.id, content=content)
    db.add(comment)
    await db.commit()
    return api_response(
        await _comment_detail(db, comment.id),
        "Comment added successfully",
        status.HTTP_201_CREATED,
    )


@router.patch("/c/{comment_id}")
async def update_comment(
    comment_id: str,
    body: CommentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    comment = await crud.get_owned(db, Comment, comment_id, user.id, "Comment", "update")
    comment.content = _require_content(body)
    await crud.save(db, comment)
    return api_response(
        await _comment_detail(db, comment.id), "Comment updated successfully"
    )


@router.delete("/c/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    likes: LikeService = Depends(get_like_service),
):
    comment = await crud.get_owned(db, Comment, comment_id, user.id, "Comment", "delete")
    comment_id = comment.id
    await crud.delete_comment(db, comment)
    await likes.forget(TargetKind.COMMENT, [comment_id])
    return api_response({}, "Comment deleted successfully")
