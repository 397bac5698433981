"""Channel subscription endpoints."""

from fastapi import APIRouter, Depends, Request

from videotube.api.dependencies import get_subscription_service
from videotube.api.limiting import limiter
from videotube.auth.dependencies import require_user
from videotube.db.models import User
from videotube.engagement import SubscriptionService
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import Page, SubscriptionItem, SubscriptionToggleResult, owner_profile

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def _items(rows) -> list[SubscriptionItem]:
    return [
        SubscriptionItem(profile=owner_profile(profile), subscribed_at=subscribed_at)
        for profile, subscribed_at in rows
    ]


@router.post("/c/{channel_id}")
@limiter.limit("60/minute")
async def toggle_subscription(
    request: Request,
    channel_id: str,
    user: User = Depends(require_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """
    Subscribe to a channel, or unsubscribe if already subscribed.

    Rate limit: 60 requests per minute per IP.
    """
    result = await subscriptions.toggle(channel_id, user.id)
    message = "Subscribed successfully" if result.subscribed else "Unsubscribed successfully"
    return api_response(
        SubscriptionToggleResult(
            subscribed=result.subscribed, total_subscribers=result.total_subscribers
        ),
        message,
    )


@router.get("/c/{channel_id}")
async def get_channel_subscribers(
    channel_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """Users subscribed to a channel, newest first."""
    rows, total = await subscriptions.subscribers(channel_id, params)
    return api_response(
        Page.build(_items(rows), params.page, params.limit, total),
        "Subscribers fetched successfully",
    )


@router.get("/u/{subscriber_id}")
async def get_subscribed_channels(
    subscriber_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """Channels a user is subscribed to, newest first."""
    rows, total = await subscriptions.subscribed_channels(subscriber_id, params)
    return api_response(
        Page.build(_items(rows), params.page, params.limit, total),
        "Subscribed channels fetched successfully",
    )
