"""Database module for the VideoTube API."""

from videotube.db.models import (
    Base,
    Comment,
    Like,
    Playlist,
    PlaylistVideo,
    Subscription,
    Tweet,
    User,
    Video,
    WatchHistoryEntry,
)
from videotube.db.session import get_engine, get_session, get_sessionmaker

__all__ = [
    "Base",
    "User",
    "Video",
    "Comment",
    "Tweet",
    "Playlist",
    "PlaylistVideo",
    "Like",
    "Subscription",
    "WatchHistoryEntry",
    "get_session",
    "get_engine",
    "get_sessionmaker",
]
