"""Shared fixtures: in-memory database, app wired to it, and user helpers."""

import os

os.environ.setdefault("VT_ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("VT_REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("VT_RATE_LIMIT_ENABLED", "false")

from functools import lru_cache

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from videotube.auth.security import create_access_token, hash_password
from videotube.db.models import Base, Comment, Tweet, User, Video
from videotube.db.session import get_session
from videotube.engagement import KeyedLocks
from videotube.engagement.cache import MemoryLikeCountCache
from videotube.storage import LocalMediaStorage

TEST_PASSWORD = "password123"


@lru_cache(maxsize=1)
def password_hash() -> str:
    """bcrypt is slow; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory test database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
    )

    # Enable foreign key support for SQLite
    async with engine.begin() as conn:
        await conn.execute(text("PRAGMA foreign_keys=ON"))
        await conn.run_sync(Base.metadata.create_all)

    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    yield sessionmaker

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db):
    async with test_db() as session:
        yield session


def override_get_session(sessionmaker):
    """Create a dependency override for get_session."""

    async def _override():
        async with sessionmaker() as session:
            yield session

    return _override


@pytest_asyncio.fixture
async def app(test_db, tmp_path):
    from main import create_app

    application = create_app()
    application.dependency_overrides[get_session] = override_get_session(test_db)
    application.state.like_cache = MemoryLikeCountCache(capacity=100)
    application.state.key_locks = KeyedLocks()
    application.state.media_storage = LocalMediaStorage(
        tmp_path / "media", "http://testserver"
    )
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def make_user(test_db):
    """Factory creating users directly in the database."""

    async def _make(username: str = "alice", email: str | None = None) -> User:
        async with test_db() as db:
            user = User(
                username=username,
                email=email or f"{username}@example.com",
                full_name=username.title(),
                password_hash=password_hash(),
                avatar=f"http://testserver/media/{username}.png",
            )
            db.add(user)
            await db.commit()
            await db.refresh(user)
        return user

    return _make


@pytest_asyncio.fixture
async def make_video(test_db):
    async def _make(owner: User, title: str = "Video", published: bool = True, **fields) -> Video:
        async with test_db() as db:
            video = Video(
                owner_id=owner.id,
                title=title,
                description=fields.pop("description", f"About {title}"),
                video_file=fields.pop("video_file", "http://testserver/media/v.mp4"),
                thumbnail=fields.pop("thumbnail", "http://testserver/media/t.png"),
                duration=fields.pop("duration", 60.0),
                is_published=published,
                **fields,
            )
            db.add(video)
            await db.commit()
            await db.refresh(video)
        return video

    return _make


@pytest_asyncio.fixture
async def make_comment(test_db):
    async def _make(owner: User, video: Video, content: str = "Nice video") -> Comment:
        async with test_db() as db:
            comment = Comment(owner_id=owner.id, video_id=video.id, content=content)
            db.add(comment)
            await db.commit()
            await db.refresh(comment)
        return comment

    return _make


@pytest_asyncio.fixture
async def make_tweet(test_db):
    async def _make(owner: User, content: str = "Hello") -> Tweet:
        async with test_db() as db:
            tweet = Tweet(owner_id=owner.id, content=content)
            db.add(tweet)
            await db.commit()
            await db.refresh(tweet)
        return tweet

    return _make


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.username, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth():
    """Build bearer headers for a user."""
    return auth_headers
