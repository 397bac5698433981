"""Subscriber/channel edges."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.db.models import Subscription, User
from videotube.errors import InvalidArgument, NotFound, StorageError
from videotube.ids import parse_id
from videotube.pagination import PageParams, paginate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionResult:
    subscribed: bool
    total_subscribers: int


class SubscriptionService:
    """Toggles and lists subscriptions; counts are always read from the store."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def toggle(self, channel_id: str, subscriber_id: str) -> SubscriptionResult:
        """
        Subscribe to the channel, or unsubscribe if already subscribed.

        Raises:
            InvalidArgument: If an ID is malformed or the user targets their own channel
            NotFound: If the channel does not exist
            StorageError: If the store rejects the write
        """
        channel_id = parse_id(channel_id, "Channel ID")
        subscriber_id = parse_id(subscriber_id, "Subscriber ID")
        if channel_id == subscriber_id:
            raise InvalidArgument("You cannot subscribe to your own channel")

        await self._require_channel(channel_id)

        try:
            result = await self.db.execute(
                delete(Subscription).where(
                    Subscription.channel_id == channel_id,
                    Subscription.subscriber_id == subscriber_id,
                )
            )
            if result.rowcount:
                subscribed = False
            else:
                self.db.add(
                    Subscription(channel_id=channel_id, subscriber_id=subscriber_id)
                )
                subscribed = True
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if not await self.is_subscribed(subscriber_id, channel_id):
                if await self.db.get(User, channel_id) is None:
                    raise NotFound("Channel not found")
                raise StorageError("Error while toggling subscription")
            # Another writer created the same edge first
            subscribed = True
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError("Error while toggling subscription") from e

        total = await self.count_subscribers(channel_id)
        logger.info(
            f"Subscription toggled: channel={channel_id}, subscriber={subscriber_id}, "
            f"subscribed={subscribed}"
        )
        return SubscriptionResult(subscribed=subscribed, total_subscribers=total)

    async def _require_channel(self, channel_id: str) -> None:
        if await self.db.get(User, channel_id) is None:
            raise NotFound("Channel not found")

    async def count_subscribers(self, channel_id: str) -> int:
        count = await self.db.scalar(
            select(func.count(Subscription.id)).where(Subscription.channel_id == channel_id)
        )
        return count or 0

    async def count_subscriptions(self, subscriber_id: str) -> int:
        count = await self.db.scalar(
            select(func.count(Subscription.id)).where(
                Subscription.subscriber_id == subscriber_id
            )
        )
        return count or 0

    async def is_subscribed(self, subscriber_id: str, channel_id: str) -> bool:
        result = await self.db.execute(
            select(Subscription.id).where(
                Subscription.subscriber_id == subscriber_id,
                Subscription.channel_id == channel_id,
            )
        )
        return result.first() is not None

    async def subscribers(
        self, channel_id: str, params: PageParams
    ) -> tuple[list[tuple[User, datetime]], int]:
        """Users subscribed to a channel, newest first."""
        channel_id = parse_id(channel_id, "Channel ID")
        stmt = (
            select(User, Subscription.created_at)
            .join(Subscription, Subscription.subscriber_id == User.id)
            .where(Subscription.channel_id == channel_id)
            .order_by(Subscription.created_at.desc())
        )
        rows, total = await paginate(self.db, stmt, params)
        return [(row[0], row[1]) for row in rows], total

    async def subscribed_channels(
        self, subscriber_id: str, params: PageParams
    ) -> tuple[list[tuple[User, datetime]], int]:
        """Channels a user is subscribed to, newest first."""
        subscriber_id = parse_id(subscriber_id, "Subscriber ID")
        stmt = (
            select(User, Subscription.created_at)
            .join(Subscription, Subscription.channel_id == User.id)
            .where(Subscription.subscriber_id == subscriber_id)
            .order_by(Subscription.created_at.desc())
        )
        rows, total = await paginate(self.db, stmt, params)
        return [(row[0], row[1]) for row in rows], total
