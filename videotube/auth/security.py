"""Password hashing and JWT access/refresh token handling."""

import hashlib
import secrets
import time

from jose import JWTError, jwt
from passlib.context import CryptContext

from videotube.config import get_settings

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, username: str, email: str) -> str:
    """Create a short-lived signed access token."""
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": user_id,
        "username": username,
        "email": email,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + settings.access_token_expire_minutes * 60,
    }
    return jwt.encode(payload, settings.access_token_secret, algorithm=ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    """Create a long-lived refresh token.

    The random ``jti`` makes every issued token distinct, so a rotation
    always invalidates the previous value.
    """
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": user_id,
        "type": REFRESH_TOKEN_TYPE,
        "jti": secrets.token_urlsafe(16),
        "iat": now,
        "exp": now + settings.refresh_token_expire_days * 86400,
    }
    return jwt.encode(payload, settings.refresh_token_secret, algorithm=ALGORITHM)


def _verify(token: str, secret: str, token_type: str) -> str | None:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload.get("sub")


def verify_access_token(token: str) -> str | None:
    """Return the user ID of a valid access token, or None."""
    return _verify(token, get_settings().access_token_secret, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> str | None:
    """Return the user ID of a valid refresh token, or None."""
    return _verify(token, get_settings().refresh_token_secret, REFRESH_TOKEN_TYPE)


def token_digest(token: str) -> str:
    """Digest stored in place of the refresh token itself."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
