"""Content kinds a like can point at."""

import enum
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import InstrumentedAttribute

from videotube.db.models import Comment, Like, Tweet, Video


class TargetKind(str, enum.Enum):
    VIDEO = "video"
    COMMENT = "comment"
    TWEET = "tweet"


@dataclass(frozen=True)
class TargetAccessor:
    """Where a kind's rows live and which Like column references them."""

    model: type[Video] | type[Comment] | type[Tweet]
    like_column: InstrumentedAttribute
    label: str

    def like_for(self, user_id: str, target_id: str) -> Like:
        return Like(liked_by_id=user_id, **{self.like_column.key: target_id})


TARGETS: dict[TargetKind, TargetAccessor] = {
    TargetKind.VIDEO: TargetAccessor(Video, Like.video_id, "Video"),
    TargetKind.COMMENT: TargetAccessor(Comment, Like.comment_id, "Comment"),
    TargetKind.TWEET: TargetAccessor(Tweet, Like.tweet_id, "Tweet"),
}


def cache_key(kind: TargetKind, target_id: str) -> str:
    return f"{kind.value}:{target_id}"


def like_count_column(kind: TargetKind):
    """Correlated count of likes on each row of ``kind``, labeled ``likes``."""
    accessor = TARGETS[kind]
    return (
        select(func.count(Like.id))
        .where(accessor.like_column == accessor.model.id)
        .correlate(accessor.model)
        .scalar_subquery()
        .label("likes")
    )
