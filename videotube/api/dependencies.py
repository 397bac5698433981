"""FastAPI dependencies for API routers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.db.session import get_session
from videotube.engagement import (
    KeyedLocks,
    LikeCountCache,
    LikeService,
    SubscriptionService,
)
from videotube.storage import MediaStorage


def get_like_cache(request: Request) -> LikeCountCache:
    """The like-count memo built at startup."""
    return request.app.state.like_cache


def get_key_locks(request: Request) -> KeyedLocks:
    return request.app.state.key_locks


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media_storage


def get_like_service(
    db: AsyncSession = Depends(get_session),
    cache: LikeCountCache = Depends(get_like_cache),
    locks: KeyedLocks = Depends(get_key_locks),
) -> LikeService:
    return LikeService(db, cache, locks)


def get_subscription_service(
    db: AsyncSession = Depends(get_session),
) -> SubscriptionService:
    return SubscriptionService(db)
