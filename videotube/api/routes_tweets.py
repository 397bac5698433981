"""Tweet endpoints: short text posts on a user's channel."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.api.dependencies import get_like_service
from videotube.api.limiting import limiter
from videotube.auth.dependencies import require_user
from videotube.db import crud
from videotube.db.models import Tweet, User
from videotube.db.session import get_session
from videotube.engagement import LikeService, TargetKind
from videotube.errors import InvalidArgument, NotFound
from videotube.ids import parse_id
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import CamelModel, Page, tweet_out

router = APIRouter(prefix="/tweets", tags=["tweets"])


class TweetRequest(CamelModel):
    content: str = ""


def _require_content(body: TweetRequest) -> str:
    content = body.content.strip()
    if not content:
        raise InvalidArgument("Tweet content is required")
    return content


async def _tweet_detail(db: AsyncSession, tweet_id: str):
    detail = await crud.get_tweet_detail(db, tweet_id)
    if detail is None:
        raise NotFound("Tweet not found")
    return tweet_out(*detail)


@router.post("")
@limiter.limit("30/minute")
async def create_tweet(
    request: Request,
    body: TweetRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Post a tweet.

    Rate limit: 30 requests per minute per IP.
    """
    tweet = Tweet(owner_id=user.id, content=_require_content(body))
    db.add(tweet)
    await db.commit()
    return api_response(
        await _tweet_detail(db, tweet.id),
        "Tweet created successfully",
        status.HTTP_201_CREATED,
    )


@router.get("/user/{user_id}")
async def list_user_tweets(
    user_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Tweets of a user, newest first; an empty page when they have none."""
    user_id = parse_id(user_id, "User ID")
    rows, total = await crud.list_user_tweets(db, user_id, params)
    items = [tweet_out(tweet, likes) for tweet, likes in rows]
    return api_response(
        Page.build(items, params.page, params.limit, total),
        "Tweets fetched successfully",
    )


@router.patch("/{tweet_id}")
async def update_tweet(
    tweet_id: str,
    body: TweetRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    tweet = await crud.get_owned(db, Tweet, tweet_id, user.id, "Tweet", "update")
    tweet.content = _require_content(body)
    await crud.save(db, tweet)
    return api_response(await _tweet_detail(db, tweet.id), "Tweet updated successfully")


@router.delete("/{tweet_id}")
async def delete_tweet(
    tweet_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    likes: LikeService = Depends(get_like_service),
):
    tweet = await crud.get_owned(db, Tweet, tweet_id, user.id, "Tweet", "delete")
    tweet_id = tweet.id
    await crud.delete_tweet(db, tweet)
    await likes.forget(TargetKind.TWEET, [tweet_id])
    return api_response({}, "Tweet deleted successfully")
