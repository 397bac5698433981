"""Authentication dependency and session cookie helpers."""

from typing import Annotated

from fastapi import Cookie, Depends, Header, Response
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.auth.security import verify_access_token
from videotube.config import get_settings
from videotube.db import crud
from videotube.db.models import User
from videotube.db.session import get_session
from videotube.errors import Unauthorized

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_user(
    authorization: Annotated[str | None, Header()] = None,
    access_cookie: Annotated[str | None, Cookie(alias=ACCESS_COOKIE)] = None,
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    FastAPI dependency that requires a valid authenticated user.

    The access token is read from the ``Authorization: Bearer`` header, or
    from the ``accessToken`` cookie when no header is sent.

    Returns:
        The authenticated User object

    Raises:
        Unauthorized: If the token is missing, invalid or expired, or the user is gone
    """
    token = _bearer_token(authorization) or access_cookie
    if not token:
        raise Unauthorized("Unauthorized request")

    user_id = verify_access_token(token)
    if not user_id:
        raise Unauthorized("Invalid access token")

    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise Unauthorized("Invalid access token")

    return user


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    settings = get_settings()
    is_prod = settings.env == "prod"

    response.set_cookie(
        key=ACCESS_COOKIE,
        value=access_token,
        httponly=True,
        samesite="lax",
        secure=is_prod,
        max_age=settings.access_token_expire_minutes * 60,
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        samesite="lax",
        secure=is_prod,
        max_age=settings.refresh_token_expire_days * 86400,
    )


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(key=ACCESS_COOKIE, httponly=True, samesite="lax")
    response.delete_cookie(key=REFRESH_COOKIE, httponly=True, samesite="lax")
