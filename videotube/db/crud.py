"""CRUD utilities for database operations."""

import logging
from typing import TypeVar

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from videotube.db.models import (
    Comment,
    Like,
    Playlist,
    PlaylistVideo,
    Subscription,
    Tweet,
    User,
    Video,
    WatchHistoryEntry,
    utcnow,
)
from videotube.engagement.targets import TargetKind, like_count_column
from videotube.errors import Conflict, Forbidden, InvalidArgument, NotFound
from videotube.ids import parse_id
from videotube.pagination import PageParams, paginate

logger = logging.getLogger(__name__)

Owned = TypeVar("Owned", Video, Comment, Tweet, Playlist)

VIDEO_SORT_FIELDS = {
    "createdAt": Video.created_at,
    "title": Video.title,
    "views": Video.views,
    "duration": Video.duration,
}


# Users


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Get a user by their ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username.lower()))
    return result.scalar_one_or_none()


async def find_user_for_login(
    db: AsyncSession, username: str | None, email: str | None
) -> User | None:
    """Find a user by username or email, whichever was given."""
    conditions = []
    if username:
        conditions.append(User.username == username.lower())
    if email:
        conditions.append(User.email == email)
    if not conditions:
        return None
    result = await db.execute(select(User).where(or_(*conditions)).limit(1))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    username: str,
    email: str,
    full_name: str,
    password_hash: str,
    avatar: str,
    cover_image: str | None = None,
) -> User:
    """Create a user.

    Raises:
        Conflict: If the username or email is already taken
    """
    username = username.lower()
    existing = await db.execute(
        select(User.id).where(or_(User.username == username, User.email == email))
    )
    if existing.first() is not None:
        raise Conflict("User with email or username already exists")

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        password_hash=password_hash,
        avatar=avatar,
        cover_image=cover_image,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("User with email or username already exists")
    await db.refresh(user)
    return user


async def set_refresh_token_hash(db: AsyncSession, user: User, digest: str | None) -> None:
    """Replace the user's single active refresh token digest."""
    user.refresh_token_hash = digest
    await db.commit()


async def update_user_fields(db: AsyncSession, user: User, **fields) -> User:
    """Update profile fields of a user.

    Raises:
        Conflict: If a new email belongs to another user
    """
    email = fields.get("email")
    if email and email != user.email:
        taken = await db.execute(
            select(User.id).where(User.email == email, User.id != user.id)
        )
        if taken.first() is not None:
            raise Conflict("Email is already in use")

    for name, value in fields.items():
        setattr(user, name, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Email is already in use")
    await db.refresh(user)
    return user


# Ownership


async def get_owned(
    db: AsyncSession,
    model: type[Owned],
    obj_id: str,
    user_id: str,
    label: str,
    action: str = "modify",
) -> Owned:
    """Load an entity the acting user must own.

    Raises:
        InvalidArgument: If ``obj_id`` is malformed
        NotFound: If the entity does not exist
        Forbidden: If ``user_id`` is not the owner
    """
    obj_id = parse_id(obj_id, f"{label} ID")
    obj = await db.get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label} not found")
    if obj.owner_id != user_id:
        logger.warning(f"Ownership check failed: user={user_id} {action} {label.lower()}={obj_id}")
        raise Forbidden(f"You can only {action} your own {label.lower()}s")
    return obj


async def save(db: AsyncSession, obj):
    """Commit pending changes to ``obj`` and reload it."""
    await db.commit()
    await db.refresh(obj)
    return obj


# Videos


def _video_select():
    return select(Video, like_count_column(TargetKind.VIDEO)).options(
        selectinload(Video.owner)
    )


def visible_to(viewer_id: str | None):
    """Published videos, plus unpublished ones owned by the viewer."""
    if viewer_id is None:
        return Video.is_published.is_(True)
    return or_(Video.is_published.is_(True), Video.owner_id == viewer_id)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def list_videos(
    db: AsyncSession,
    params: PageParams,
    viewer_id: str | None,
    query: str | None = None,
    owner_id: str | None = None,
    sort_by: str | None = None,
    sort_type: str | None = None,
    random: bool = False,
) -> tuple[list[tuple[Video, int]], int]:
    """List videos with owner profile and like count.

    Args:
        db: Database session
        params: Page window
        viewer_id: Acting user; listing their own channel includes unpublished videos
        query: Case-insensitive substring of the title
        owner_id: Restrict to one channel
        sort_by: One of VIDEO_SORT_FIELDS (default createdAt)
        sort_type: "asc" or "desc" (default desc)
        random: Return a random sample instead of a sorted window

    Returns:
        Tuple of ([(video, likes)], total matching videos)
    """
    sort_column = VIDEO_SORT_FIELDS.get(sort_by or "createdAt")
    if sort_column is None:
        raise InvalidArgument(
            f"sortBy must be one of: {', '.join(sorted(VIDEO_SORT_FIELDS))}"
        )
    if sort_type not in (None, "asc", "desc"):
        raise InvalidArgument("sortType must be 'asc' or 'desc'")

    stmt = _video_select()
    if owner_id:
        owner_id = parse_id(owner_id, "User ID")
        stmt = stmt.where(Video.owner_id == owner_id)
    if not owner_id or owner_id != viewer_id:
        stmt = stmt.where(Video.is_published.is_(True))
    if query:
        stmt = stmt.where(Video.title.ilike(f"%{_escape_like(query)}%", escape="\\"))

    order = sort_column.asc() if sort_type == "asc" else sort_column.desc()
    stmt = stmt.order_by(order, Video.id)

    rows, total = await paginate(db, stmt, params, random=random)
    return [(row[0], row.likes) for row in rows], total


async def get_video_detail(db: AsyncSession, video_id: str) -> tuple[Video, int] | None:
    """Get a video with its owner and like count."""
    result = await db.execute(
        _video_select()
        .where(Video.id == video_id)
        .execution_options(populate_existing=True)
    )
    row = result.first()
    return (row[0], row.likes) if row else None


async def create_video(
    db: AsyncSession,
    owner_id: str,
    title: str,
    description: str,
    video_file: str,
    thumbnail: str,
    duration: float,
) -> Video:
    video = Video(
        owner_id=owner_id,
        title=title,
        description=description,
        video_file=video_file,
        thumbnail=thumbnail,
        duration=duration,
        is_published=True,
    )
    db.add(video)
    await db.commit()
    return video


async def record_view(db: AsyncSession, video_id: str, user_id: str) -> None:
    """Count a view and move the video to the head of the user's watch history."""
    await db.execute(
        update(Video).where(Video.id == video_id).values(views=Video.views + 1)
    )
    await db.commit()

    result = await db.execute(
        select(WatchHistoryEntry).where(
            WatchHistoryEntry.user_id == user_id,
            WatchHistoryEntry.video_id == video_id,
        )
    )
    entry = result.scalar_one_or_none()
    if entry:
        entry.watched_at = utcnow()
    else:
        db.add(WatchHistoryEntry(user_id=user_id, video_id=video_id))
    try:
        await db.commit()
    except IntegrityError:
        # A parallel request created the entry first
        await db.rollback()


async def delete_video(db: AsyncSession, video: Video) -> list[str]:
    """Delete a video with its comments, likes, playlist and history entries.

    Returns:
        IDs of the comments removed with the video
    """
    comment_ids = list(
        (await db.scalars(select(Comment.id).where(Comment.video_id == video.id))).all()
    )
    if comment_ids:
        await db.execute(delete(Like).where(Like.comment_id.in_(comment_ids)))
    await db.execute(delete(Like).where(Like.video_id == video.id))
    await db.execute(delete(Comment).where(Comment.video_id == video.id))
    await db.execute(delete(PlaylistVideo).where(PlaylistVideo.video_id == video.id))
    await db.execute(
        delete(WatchHistoryEntry).where(WatchHistoryEntry.video_id == video.id)
    )
    await db.delete(video)
    await db.commit()
    return comment_ids


async def get_watch_history(
    db: AsyncSession, user_id: str, params: PageParams
) -> tuple[list[tuple[WatchHistoryEntry, int]], int]:
    """Watched videos of a user, most recent first."""
    stmt = (
        select(WatchHistoryEntry, like_count_column(TargetKind.VIDEO))
        .join(Video, WatchHistoryEntry.video_id == Video.id)
        .where(WatchHistoryEntry.user_id == user_id)
        .options(selectinload(WatchHistoryEntry.video).selectinload(Video.owner))
        .order_by(WatchHistoryEntry.watched_at.desc())
    )
    rows, total = await paginate(db, stmt, params)
    return [(row[0], row.likes) for row in rows], total


# Comments


def _comment_select():
    return select(Comment, like_count_column(TargetKind.COMMENT)).options(
        selectinload(Comment.owner)
    )


async def list_comments(
    db: AsyncSession, video_id: str, params: PageParams
) -> tuple[list[tuple[Comment, int]], int]:
    """Comments of a video, oldest first."""
    stmt = (
        _comment_select()
        .where(Comment.video_id == video_id)
        .order_by(Comment.created_at.asc(), Comment.id)
    )
    rows, total = await paginate(db, stmt, params)
    return [(row[0], row.likes) for row in rows], total


async def get_comment_detail(
    db: AsyncSession, comment_id: str
) -> tuple[Comment, int] | None:
    result = await db.execute(
        _comment_select()
        .where(Comment.id == comment_id)
        .execution_options(populate_existing=True)
    )
    row = result.first()
    return (row[0], row.likes) if row else None


async def delete_comment(db: AsyncSession, comment: Comment) -> None:
    await db.execute(delete(Like).where(Like.comment_id == comment.id))
    await db.delete(comment)
    await db.commit()


# Tweets


def _tweet_select():
    return select(Tweet, like_count_column(TargetKind.TWEET)).options(
        selectinload(Tweet.owner)
    )


async def list_user_tweets(
    db: AsyncSession, user_id: str, params: PageParams
) -> tuple[list[tuple[Tweet, int]], int]:
    """Tweets of a user, newest first."""
    stmt = (
        _tweet_select()
        .where(Tweet.owner_id == user_id)
        .order_by(Tweet.created_at.desc(), Tweet.id)
    )
    rows, total = await paginate(db, stmt, params)
    return [(row[0], row.likes) for row in rows], total


async def get_tweet_detail(db: AsyncSession, tweet_id: str) -> tuple[Tweet, int] | None:
    result = await db.execute(
        _tweet_select()
        .where(Tweet.id == tweet_id)
        .execution_options(populate_existing=True)
    )
    row = result.first()
    return (row[0], row.likes) if row else None


async def delete_tweet(db: AsyncSession, tweet: Tweet) -> None:
    await db.execute(delete(Like).where(Like.tweet_id == tweet.id))
    await db.delete(tweet)
    await db.commit()


# Playlists


def _playlist_select():
    total_videos = (
        select(func.count(PlaylistVideo.id))
        .where(PlaylistVideo.playlist_id == Playlist.id)
        .correlate(Playlist)
        .scalar_subquery()
        .label("total_videos")
    )
    return select(Playlist, total_videos).options(selectinload(Playlist.owner))


async def list_user_playlists(
    db: AsyncSession, user_id: str, params: PageParams
) -> tuple[list[tuple[Playlist, int]], int]:
    """Playlists of a user, newest first, with their video counts."""
    stmt = (
        _playlist_select()
        .where(Playlist.owner_id == user_id)
        .order_by(Playlist.created_at.desc(), Playlist.id)
    )
    rows, total = await paginate(db, stmt, params)
    return [(row[0], row.total_videos) for row in rows], total


async def get_playlist_detail(
    db: AsyncSession, playlist_id: str, viewer_id: str | None
) -> tuple[Playlist, int, list[tuple[Video, int]]] | None:
    """Get a playlist with its creator and its videos in playlist order.

    The video count covers every entry, as in ``list_user_playlists``; the
    video list leaves out unpublished videos the viewer does not own.
    """
    result = await db.execute(
        _playlist_select()
        .where(Playlist.id == playlist_id)
        .execution_options(populate_existing=True)
    )
    row = result.first()
    if row is None:
        return None
    playlist, total_videos = row[0], row.total_videos

    videos = await db.execute(
        _video_select()
        .join(PlaylistVideo, PlaylistVideo.video_id == Video.id)
        .where(PlaylistVideo.playlist_id == playlist.id, visible_to(viewer_id))
        .order_by(PlaylistVideo.position)
    )
    return playlist, total_videos, [(row[0], row.likes) for row in videos.all()]


async def add_video_to_playlist(db: AsyncSession, playlist: Playlist, video_id: str) -> None:
    """Append a video to the end of a playlist.

    Raises:
        NotFound: If the video does not exist
        Conflict: If the video is already in the playlist
    """
    if await db.get(Video, video_id) is None:
        raise NotFound("Video not found")

    present = await db.execute(
        select(PlaylistVideo.id).where(
            PlaylistVideo.playlist_id == playlist.id,
            PlaylistVideo.video_id == video_id,
        )
    )
    if present.first() is not None:
        raise Conflict("Video is already in the playlist")

    last = await db.scalar(
        select(func.max(PlaylistVideo.position)).where(
            PlaylistVideo.playlist_id == playlist.id
        )
    )
    db.add(
        PlaylistVideo(playlist_id=playlist.id, video_id=video_id, position=(last or 0) + 1)
    )
    playlist.updated_at = utcnow()
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Video is already in the playlist")


async def remove_video_from_playlist(
    db: AsyncSession, playlist: Playlist, video_id: str
) -> None:
    """Remove a video from a playlist, keeping the order of the rest.

    Raises:
        NotFound: If the video is not in the playlist
    """
    result = await db.execute(
        delete(PlaylistVideo).where(
            PlaylistVideo.playlist_id == playlist.id,
            PlaylistVideo.video_id == video_id,
        )
    )
    if not result.rowcount:
        await db.rollback()
        raise NotFound("Video is not in the playlist")
    playlist.updated_at = utcnow()
    await db.commit()


async def delete_playlist(db: AsyncSession, playlist: Playlist) -> None:
    await db.execute(delete(PlaylistVideo).where(PlaylistVideo.playlist_id == playlist.id))
    await db.delete(playlist)
    await db.commit()


# Dashboard


async def get_channel_stats(db: AsyncSession, channel_id: str) -> dict[str, int]:
    """Aggregate numbers of a channel's videos, likes and subscribers."""
    total_videos = await db.scalar(
        select(func.count(Video.id)).where(Video.owner_id == channel_id)
    )
    total_views = await db.scalar(
        select(func.coalesce(func.sum(Video.views), 0)).where(Video.owner_id == channel_id)
    )
    total_likes = await db.scalar(
        select(func.count(Like.id))
        .join(Video, Like.video_id == Video.id)
        .where(Video.owner_id == channel_id)
    )
    total_subscribers = await db.scalar(
        select(func.count(Subscription.id)).where(Subscription.channel_id == channel_id)
    )
    return {
        "total_videos": total_videos or 0,
        "total_views": total_views or 0,
        "total_likes": total_likes or 0,
        "total_subscribers": total_subscribers or 0,
    }


async def list_channel_videos(
    db: AsyncSession, channel_id: str, params: PageParams
) -> tuple[list[tuple[Video, int]], int]:
    """Published videos of a channel, newest first."""
    stmt = (
        _video_select()
        .where(Video.owner_id == channel_id, Video.is_published.is_(True))
        .order_by(Video.created_at.desc(), Video.id)
    )
    rows, total = await paginate(db, stmt, params)
    return [(row[0], row.likes) for row in rows], total
