"""Pydantic models for API payloads.

Fields are declared in snake_case and serialized in camelCase.
"""

import math
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from videotube.db.models import Comment, Playlist, Tweet, User, Video

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OwnerProfile(CamelModel):
    """Public profile fields joined onto owned content."""

    id: str
    username: str
    full_name: str
    avatar: str


class UserOut(CamelModel):
    """A user without password or refresh token fields."""

    id: str
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str | None = None
    created_at: datetime
    updated_at: datetime


class ChannelProfile(OwnerProfile):
    """A user seen as a channel."""

    cover_image: str | None = None
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class VideoOut(CamelModel):
    id: str
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float
    views: int
    is_published: bool
    owner: OwnerProfile | None = None
    likes: int = 0
    created_at: datetime
    updated_at: datetime


class CommentOut(CamelModel):
    id: str
    video_id: str
    content: str
    owner: OwnerProfile | None = None
    likes: int = 0
    created_at: datetime
    updated_at: datetime


class TweetOut(CamelModel):
    id: str
    content: str
    owner: OwnerProfile | None = None
    likes: int = 0
    created_at: datetime
    updated_at: datetime


class PlaylistOut(CamelModel):
    id: str
    name: str
    description: str
    created_by: OwnerProfile | None = None
    total_videos: int = 0
    created_at: datetime
    updated_at: datetime


class PlaylistDetail(PlaylistOut):
    videos: list[VideoOut] = []


class WatchHistoryItem(CamelModel):
    video: VideoOut
    watched_at: datetime


class SubscriptionItem(CamelModel):
    """The other side of a subscription edge and when it was created."""

    profile: OwnerProfile
    subscribed_at: datetime


class ChannelStats(CamelModel):
    total_videos: int
    total_views: int
    total_likes: int
    total_subscribers: int


class LikeToggleResult(CamelModel):
    liked: bool
    total_likes: int


class SubscriptionToggleResult(CamelModel):
    subscribed: bool
    total_subscribers: int


class Page(CamelModel, Generic[T]):
    """One window of a paginated listing."""

    items: list[T]
    page: int
    limit: int
    total_items: int
    total_pages: int

    @classmethod
    def build(cls, items: list[T], page: int, limit: int, total: int) -> "Page[T]":
        return cls(
            items=items,
            page=page,
            limit=limit,
            total_items=total,
            total_pages=math.ceil(total / limit) if limit else 0,
        )


def owner_profile(user: User | None) -> OwnerProfile | None:
    if user is None:
        return None
    return OwnerProfile(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        avatar=user.avatar,
    )


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        avatar=user.avatar,
        cover_image=user.cover_image,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def video_out(video: Video, likes: int = 0) -> VideoOut:
    """Build a VideoOut; ``video.owner`` must already be loaded."""
    return VideoOut(
        id=video.id,
        title=video.title,
        description=video.description,
        video_file=video.video_file,
        thumbnail=video.thumbnail,
        duration=video.duration,
        views=video.views,
        is_published=video.is_published,
        owner=owner_profile(video.owner),
        likes=likes,
        created_at=video.created_at,
        updated_at=video.updated_at,
    )


def comment_out(comment: Comment, likes: int = 0) -> CommentOut:
    return CommentOut(
        id=comment.id,
        video_id=comment.video_id,
        content=comment.content,
        owner=owner_profile(comment.owner),
        likes=likes,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


def tweet_out(tweet: Tweet, likes: int = 0) -> TweetOut:
    return TweetOut(
        id=tweet.id,
        content=tweet.content,
        owner=owner_profile(tweet.owner),
        likes=likes,
        created_at=tweet.created_at,
        updated_at=tweet.updated_at,
    )


def playlist_out(playlist: Playlist, total_videos: int = 0) -> PlaylistOut:
    return PlaylistOut(
        id=playlist.id,
        name=playlist.name,
        description=playlist.description,
        created_by=owner_profile(playlist.owner),
        total_videos=total_videos,
        created_at=playlist.created_at,
        updated_at=playlist.updated_at,
    )
