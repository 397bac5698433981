"""Like toggling and memoized like counts."""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from videotube.db.models import Like, Video
from videotube.engagement.cache import LikeCountCache
from videotube.engagement.locks import KeyedLocks
from videotube.engagement.targets import (
    TARGETS,
    TargetAccessor,
    TargetKind,
    cache_key,
    like_count_column,
)
from videotube.errors import NotFound, StorageError
from videotube.ids import parse_id
from videotube.pagination import PageParams, paginate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToggleResult:
    liked: bool
    total_likes: int


class LikeService:
    """Flips the like relation between a user and a target and reports counts.

    Toggles and count reads on the same target are serialized through
    ``locks``, so the memo is never repopulated with a count older than the
    last completed toggle in this process. The unique constraints on
    ``likes`` keep concurrent toggles from other processes from creating
    duplicate rows.
    """

    def __init__(self, db: AsyncSession, cache: LikeCountCache, locks: KeyedLocks):
        self.db = db
        self.cache = cache
        self.locks = locks

    async def toggle(self, kind: TargetKind, target_id: str, user_id: str) -> ToggleResult:
        """
        Like the target if the user has not liked it yet, otherwise remove the like.

        Args:
            kind: Which kind of content the target is
            target_id: ID of the video, comment or tweet
            user_id: ID of the acting user

        Returns:
            Whether the target is now liked by the user and its total like count

        Raises:
            InvalidArgument: If either ID is malformed
            NotFound: If the target does not exist
            StorageError: If the store rejects the write or the count
        """
        accessor = TARGETS[kind]
        target_id = parse_id(target_id, f"{accessor.label} ID")
        user_id = parse_id(user_id, "User ID")
        await self._require_target(accessor, target_id)

        key = cache_key(kind, target_id)
        async with self.locks.hold(key):
            liked = await self._flip(accessor, target_id, user_id)
            if await self.cache.invalidate(key):
                total = await self._read_count(accessor, key, target_id)
            else:
                # The stale entry is still readable until it expires
                total = await self._count_likes(accessor, target_id)

        logger.info(
            f"Like toggled: kind={kind.value}, target={target_id}, user={user_id}, "
            f"liked={liked}, total={total}"
        )
        return ToggleResult(liked=liked, total_likes=total)

    async def like_count(self, kind: TargetKind, target_id: str) -> int:
        """Current like count of a target, served from the memo when present."""
        accessor = TARGETS[kind]
        target_id = parse_id(target_id, f"{accessor.label} ID")
        await self._require_target(accessor, target_id)

        key = cache_key(kind, target_id)
        async with self.locks.hold(key):
            return await self._read_count(accessor, key, target_id)

    async def forget(self, kind: TargetKind, target_ids: list[str]) -> None:
        """Drop memo entries of targets that no longer exist."""
        for target_id in target_ids:
            await self.cache.invalidate(cache_key(kind, target_id))

    async def liked_videos(
        self, user_id: str, params: PageParams
    ) -> tuple[list[tuple[Video, int]], int]:
        """Videos the user liked, most recently liked first."""
        user_id = parse_id(user_id, "User ID")
        stmt = (
            select(Video, like_count_column(TargetKind.VIDEO))
            .join(Like, Like.video_id == Video.id)
            .where(
                Like.liked_by_id == user_id,
                or_(Video.is_published.is_(True), Video.owner_id == user_id),
            )
            .options(selectinload(Video.owner))
            .order_by(Like.created_at.desc())
        )
        rows, total = await paginate(self.db, stmt, params)
        return [(row[0], row.likes) for row in rows], total

    async def _require_target(self, accessor: TargetAccessor, target_id: str) -> None:
        if await self.db.get(accessor.model, target_id) is None:
            raise NotFound(f"{accessor.label} not found")

    async def _flip(self, accessor: TargetAccessor, target_id: str, user_id: str) -> bool:
        try:
            result = await self.db.execute(
                delete(Like).where(
                    accessor.like_column == target_id,
                    Like.liked_by_id == user_id,
                )
            )
            if result.rowcount:
                await self.db.commit()
                return False

            self.db.add(accessor.like_for(user_id, target_id))
            await self.db.commit()
            return True
        except IntegrityError:
            await self.db.rollback()
            if await self._has_liked(accessor, target_id, user_id):
                # Another writer inserted the same like first
                logger.info(f"Concurrent like insert on {target_id} by {user_id}")
                return True
            if await self.db.get(accessor.model, target_id) is None:
                raise NotFound(f"{accessor.label} not found")
            raise StorageError("Database error during toggle like operation")
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError("Database error during toggle like operation") from e

    async def _has_liked(self, accessor: TargetAccessor, target_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            select(Like.id).where(
                accessor.like_column == target_id,
                Like.liked_by_id == user_id,
            )
        )
        return result.first() is not None

    async def _count_likes(self, accessor: TargetAccessor, target_id: str) -> int:
        try:
            count = await self.db.scalar(
                select(func.count(Like.id)).where(accessor.like_column == target_id)
            )
        except SQLAlchemyError as e:
            raise StorageError("Error counting total likes") from e
        return count or 0

    async def _read_count(self, accessor: TargetAccessor, key: str, target_id: str) -> int:
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        count = await self._count_likes(accessor, target_id)
        await self.cache.set(key, count)
        return count
