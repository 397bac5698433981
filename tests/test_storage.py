"""Tests for media storage backends and upload validation."""

import io
from unittest.mock import AsyncMock

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from videotube.config import Settings
from videotube.errors import InvalidArgument
from videotube.storage import (
    LocalMediaStorage,
    MediaStorage,
    discard_media,
    get_media_storage,
    store_upload,
)


def _upload(filename: str, data: bytes, content_type: str = "image/png") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def storage(tmp_path):
    return LocalMediaStorage(tmp_path / "media", "http://localhost:8000/")


@pytest.mark.asyncio
async def test_local_save_and_delete(storage):
    stored = await storage.save("pic.png", b"data", "image/png")

    assert stored.url == "http://localhost:8000/media/pic.png"
    assert stored.duration is None
    assert (storage.base_path / "pic.png").read_bytes() == b"data"

    assert await storage.delete(stored.url) is True
    assert await storage.delete(stored.url) is False


@pytest.mark.asyncio
async def test_local_rejects_path_escape(storage):
    with pytest.raises(ValueError):
        await storage.save("../outside.png", b"x", None)


@pytest.mark.asyncio
async def test_store_upload_uses_random_name(storage):
    stored = await store_upload(storage, _upload("Holiday.PNG", b"img"), "image", 1024)

    name = stored.url.rsplit("/", 1)[-1]
    assert name.endswith(".png")
    assert name != "Holiday.PNG"
    assert (storage.base_path / name).exists()


@pytest.mark.asyncio
async def test_store_upload_validation(storage):
    with pytest.raises(InvalidArgument, match="Unsupported video file type"):
        await store_upload(storage, _upload("clip.png", b"x"), "video", 1024)
    with pytest.raises(InvalidArgument, match="Empty image file"):
        await store_upload(storage, _upload("a.png", b""), "image", 1024)
    with pytest.raises(InvalidArgument, match="too large"):
        await store_upload(storage, _upload("a.png", b"x" * 11), "image", 10)


@pytest.mark.asyncio
async def test_discard_media_ignores_failures():
    storage = AsyncMock(spec=MediaStorage)
    storage.delete.side_effect = OSError("disk gone")

    await discard_media(storage, "http://localhost:8000/media/a.png")
    await discard_media(storage, None)

    storage.delete.assert_awaited_once_with("http://localhost:8000/media/a.png")


def test_factory_selects_backend(tmp_path):
    settings = Settings(
        access_token_secret="a",
        refresh_token_secret="r",
        media_local_path=str(tmp_path / "uploads"),
    )
    assert isinstance(get_media_storage(settings), LocalMediaStorage)

    gcs = settings.model_copy(update={"media_storage_backend": "gcs", "gcs_bucket_name": ""})
    with pytest.raises(ValueError, match="bucket name is required"):
        get_media_storage(gcs)
