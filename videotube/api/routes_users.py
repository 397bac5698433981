"""User registration, session and profile endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.api.dependencies import get_media_storage, get_subscription_service
from videotube.api.limiting import limiter
from videotube.auth.dependencies import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    require_user,
    set_auth_cookies,
)
from videotube.auth.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    token_digest,
    verify_password,
    verify_refresh_token,
)
from videotube.config import get_settings
from videotube.db import crud
from videotube.db.models import User
from videotube.db.session import get_session
from videotube.engagement import SubscriptionService
from videotube.errors import Conflict, InvalidArgument, NotFound, Unauthorized
from videotube.pagination import PageParams, page_params
from videotube.responses import api_response
from videotube.schemas import (
    CamelModel,
    ChannelProfile,
    Page,
    WatchHistoryItem,
    user_out,
    video_out,
)
from videotube.storage import MediaStorage, discard_media, store_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


class LoginRequest(CamelModel):
    username: str | None = None
    email: str | None = None
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str | None = None


class ChangePasswordRequest(CamelModel):
    old_password: str
    new_password: str


class UpdateAccountRequest(CamelModel):
    full_name: str | None = None
    email: str | None = None


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _max_upload_bytes() -> int:
    return get_settings().max_upload_mb * 1024 * 1024


async def _issue_tokens(db: AsyncSession, user: User) -> tuple[str, str]:
    """Create an access/refresh pair and make the refresh token the active one."""
    access_token = create_access_token(user.id, user.username, user.email)
    refresh_token = create_refresh_token(user.id)
    await crud.set_refresh_token_hash(db, user, token_digest(refresh_token))
    return access_token, refresh_token


@router.post("/register")
@limiter.limit("10/minute")
async def register(
    request: Request,
    full_name: Annotated[str, Form(alias="fullName")] = "",
    email: Annotated[str, Form()] = "",
    username: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
    avatar: Annotated[UploadFile | None, File()] = None,
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
    db: AsyncSession = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    """
    Register a new user with an avatar and an optional cover image.

    Rate limit: 10 requests per minute per IP.
    """
    full_name, email, username = full_name.strip(), email.strip(), username.strip()
    if not all((full_name, email, username, password.strip())):
        raise InvalidArgument("All fields are required")
    if "@" not in email:
        raise InvalidArgument("Invalid email")
    if avatar is None:
        raise InvalidArgument("Avatar file is required")

    if await crud.find_user_for_login(db, username, email):
        raise Conflict("User with email or username already exists")

    max_bytes = _max_upload_bytes()
    avatar_media = await store_upload(storage, avatar, "image", max_bytes)
    cover_url = None
    try:
        if cover_image is not None and cover_image.filename:
            cover_url = (await store_upload(storage, cover_image, "image", max_bytes)).url
        user = await crud.create_user(
            db,
            username=username,
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            avatar=avatar_media.url,
            cover_image=cover_url,
        )
    except Exception:
        await discard_media(storage, avatar_media.url)
        await discard_media(storage, cover_url)
        raise

    logger.info(f"User registered: user_id={user.id}, ip={_client_ip(request)}")
    return api_response(
        user_out(user), "User registered successfully", status.HTTP_201_CREATED
    )


@router.post("/login")
@limiter.limit("10/minute")
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Log in with username or email and password.

    Issues an access/refresh token pair as cookies and in the response body.

    Rate limit: 10 requests per minute per IP.
    """
    if not (body.username or body.email):
        raise InvalidArgument("Username or email is required")

    user = await crud.find_user_for_login(db, body.username, body.email)
    if not user:
        raise NotFound("User does not exist")

    if not verify_password(body.password, user.password_hash):
        logger.warning(f"Failed login: user_id={user.id}, ip={_client_ip(request)}")
        raise Unauthorized("Invalid user credentials")

    access_token, refresh_token = await _issue_tokens(db, user)
    logger.info(f"User logged in: user_id={user.id}, ip={_client_ip(request)}")

    response = api_response(
        {
            "user": user_out(user),
            "accessToken": access_token,
            "refreshToken": refresh_token,
        },
        "User logged in successfully",
    )
    set_auth_cookies(response, access_token, refresh_token)
    return response


@router.post("/logout")
@limiter.limit("20/minute")
async def logout(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Revoke the active refresh token and clear both session cookies.

    Rate limit: 20 requests per minute per IP.
    """
    await crud.set_refresh_token_hash(db, user, None)
    logger.info(f"User logged out: user_id={user.id}, ip={_client_ip(request)}")

    response = api_response({}, "User logged out")
    clear_auth_cookies(response)
    return response


@router.post("/refresh-token")
@limiter.limit("20/minute")
async def refresh_access_token(
    request: Request,
    body: RefreshRequest | None = None,
    refresh_cookie: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
    db: AsyncSession = Depends(get_session),
):
    """
    Exchange the active refresh token for a new token pair.

    The presented token must be the one issued last; a used or revoked token
    is rejected.

    Rate limit: 20 requests per minute per IP.
    """
    incoming = refresh_cookie or (body.refresh_token if body else None)
    if not incoming:
        raise Unauthorized("Unauthorized request")

    user_id = verify_refresh_token(incoming)
    if not user_id:
        raise Unauthorized("Invalid refresh token")

    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise Unauthorized("Invalid refresh token")

    if user.refresh_token_hash != token_digest(incoming):
        logger.warning(
            f"Rejected stale refresh token: user_id={user.id}, ip={_client_ip(request)}"
        )
        raise Unauthorized("Refresh token is expired or used")

    access_token, refresh_token = await _issue_tokens(db, user)
    logger.info(f"Access token refreshed: user_id={user.id}")

    response = api_response(
        {"accessToken": access_token, "refreshToken": refresh_token},
        "Access token refreshed",
    )
    set_auth_cookies(response, access_token, refresh_token)
    return response


@router.get("/current-user")
async def get_current_user(user: User = Depends(require_user)):
    return api_response(user_out(user), "User fetched successfully")


@router.post("/change-password")
@limiter.limit("10/minute")
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Change the caller's password.

    Rate limit: 10 requests per minute per IP.
    """
    if not body.new_password.strip():
        raise InvalidArgument("New password is required")
    if not verify_password(body.old_password, user.password_hash):
        raise InvalidArgument("Invalid old password")

    await crud.update_user_fields(db, user, password_hash=hash_password(body.new_password))
    logger.info(f"Password changed: user_id={user.id}")
    return api_response({}, "Password changed successfully")


@router.patch("/update-account")
async def update_account(
    body: UpdateAccountRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    fields = {}
    if body.full_name and body.full_name.strip():
        fields["full_name"] = body.full_name.strip()
    if body.email and body.email.strip():
        if "@" not in body.email:
            raise InvalidArgument("Invalid email")
        fields["email"] = body.email.strip()
    if not fields:
        raise InvalidArgument("At least one of fullName or email is required")

    user = await crud.update_user_fields(db, user, **fields)
    return api_response(user_out(user), "Account details updated successfully")


async def _replace_image(
    db: AsyncSession,
    storage: MediaStorage,
    user: User,
    attribute: str,
    upload: UploadFile,
) -> User:
    """Store a new profile image and discard the one it replaces."""
    media = await store_upload(storage, upload, "image", _max_upload_bytes())
    previous = getattr(user, attribute)
    try:
        user = await crud.update_user_fields(db, user, **{attribute: media.url})
    except Exception:
        await discard_media(storage, media.url)
        raise
    await discard_media(storage, previous)
    return user


@router.patch("/avatar")
async def update_avatar(
    avatar: Annotated[UploadFile, File()],
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    user = await _replace_image(db, storage, user, "avatar", avatar)
    return api_response(user_out(user), "Avatar updated successfully")


@router.patch("/cover-image")
async def update_cover_image(
    cover_image: Annotated[UploadFile, File(alias="coverImage")],
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    user = await _replace_image(db, storage, user, "cover_image", cover_image)
    return api_response(user_out(user), "Cover image updated successfully")


@router.get("/c/{username}")
async def get_channel_profile(
    username: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """Channel profile of a user, with subscription counts seen by the caller."""
    if not username.strip():
        raise InvalidArgument("Username is missing")

    channel = await crud.get_user_by_username(db, username.strip())
    if not channel:
        raise NotFound("Channel does not exist")

    profile = ChannelProfile(
        id=channel.id,
        username=channel.username,
        full_name=channel.full_name,
        avatar=channel.avatar,
        cover_image=channel.cover_image,
        subscribers_count=await subscriptions.count_subscribers(channel.id),
        channels_subscribed_to_count=await subscriptions.count_subscriptions(channel.id),
        is_subscribed=await subscriptions.is_subscribed(user.id, channel.id),
    )
    return api_response(profile, "User channel fetched successfully")


@router.get("/history")
async def get_watch_history(
    params: PageParams = Depends(page_params),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's watched videos, most recently watched first."""
    rows, total = await crud.get_watch_history(db, user.id, params)
    items = [
        WatchHistoryItem(video=video_out(entry.video, likes), watched_at=entry.watched_at)
        for entry, likes in rows
    ]
    return api_response(
        Page.build(items, params.page, params.limit, total),
        "Watch history fetched successfully",
    )
