"""Likes and subscriptions."""

from videotube.engagement.cache import LikeCountCache, build_like_cache
from videotube.engagement.likes import LikeService, ToggleResult
from videotube.engagement.locks import KeyedLocks
from videotube.engagement.subscriptions import SubscriptionResult, SubscriptionService
from videotube.engagement.targets import TARGETS, TargetKind

__all__ = [
    "KeyedLocks",
    "LikeCountCache",
    "LikeService",
    "SubscriptionResult",
    "SubscriptionService",
    "TARGETS",
    "TargetKind",
    "ToggleResult",
    "build_like_cache",
]
