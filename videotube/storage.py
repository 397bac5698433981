"""Media storage for uploaded avatars, cover images, videos and thumbnails."""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from videotube.config import Settings
from videotube.errors import InvalidArgument

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".webm", ".mkv"}

MEDIA_ROUTE = "/media"


@dataclass(frozen=True)
class StoredMedia:
    """Durable reference to a stored file."""

    url: str
    # Reported by backends that probe uploaded video; None otherwise
    duration: float | None = None


class MediaStorage(ABC):
    """Abstract storage backend for uploaded media."""

    @abstractmethod
    async def save(self, filename: str, data: bytes, content_type: str | None) -> StoredMedia:
        """
        Save file data and return its durable reference.

        Args:
            filename: Name of the file to save
            data: Binary data to save
            content_type: MIME type reported by the client

        Returns:
            StoredMedia with the public URL of the file
        """
        pass

    @abstractmethod
    async def delete(self, url: str) -> bool:
        """
        Delete a previously saved file.

        Args:
            url: URL returned by save()

        Returns:
            True if deleted, False if not found
        """
        pass


class LocalMediaStorage(MediaStorage):
    """Local filesystem storage backend, served by the app under /media."""

    def __init__(self, base_path: str | Path, url_base: str):
        self.base_path = Path(base_path)
        self.url_base = url_base.rstrip("/")

        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, filename: str) -> Path:
        file_path = self.base_path / filename
        # Never touch anything outside the media directory
        if not file_path.resolve().is_relative_to(self.base_path.resolve()):
            raise ValueError(f"Invalid filename: {filename}")
        return file_path

    async def save(self, filename: str, data: bytes, content_type: str | None) -> StoredMedia:
        file_path = self._path(filename)
        file_path.write_bytes(data)
        logger.info(f"Saved media to local storage: {file_path}")
        return StoredMedia(url=f"{self.url_base}{MEDIA_ROUTE}/{filename}")

    async def delete(self, url: str) -> bool:
        file_path = self._path(os.path.basename(url))
        if file_path.exists():
            file_path.unlink()
            logger.info(f"Deleted media from local storage: {file_path}")
            return True
        return False


class GCSMediaStorage(MediaStorage):
    """Google Cloud Storage backend with publicly readable objects."""

    def __init__(self, settings: Settings):
        self.bucket_name = settings.gcs_bucket_name

        if not self.bucket_name:
            raise ValueError("GCS bucket name is required when using GCS storage backend")

        # Lazy import to avoid requiring google-cloud-storage for local-only deployments
        try:
            from google.cloud import storage
        except ImportError:
            raise ImportError(
                "google-cloud-storage is required for GCS backend. "
                "Install with: pip install 'videotube-api[gcs]'"
            )

        if settings.gcs_credentials_file:
            self.client = storage.Client.from_service_account_json(
                settings.gcs_credentials_file
            )
        else:
            # Use default credentials (from GOOGLE_APPLICATION_CREDENTIALS env var or metadata)
            self.client = storage.Client()

        self.bucket = self.client.bucket(self.bucket_name)

    async def save(self, filename: str, data: bytes, content_type: str | None) -> StoredMedia:
        blob = self.bucket.blob(f"media/{filename}")
        blob.upload_from_string(data, content_type=content_type or "application/octet-stream")
        logger.info(f"Saved media to GCS: gs://{self.bucket_name}/media/{filename}")
        return StoredMedia(url=blob.public_url)

    async def delete(self, url: str) -> bool:
        blob = self.bucket.blob(f"media/{os.path.basename(url)}")
        if blob.exists():
            blob.delete()
            logger.info(f"Deleted media from GCS: {url}")
            return True
        return False


def get_media_storage(settings: Settings) -> MediaStorage:
    """
    Factory function to get the configured media storage backend.

    Args:
        settings: Application settings

    Returns:
        Configured storage backend instance
    """
    if settings.media_storage_backend == "local":
        return LocalMediaStorage(settings.media_local_path, settings.media_url_base)
    elif settings.media_storage_backend == "gcs":
        return GCSMediaStorage(settings)
    else:
        raise ValueError(f"Unknown storage backend: {settings.media_storage_backend}")


async def store_upload(
    storage: MediaStorage,
    upload: UploadFile,
    kind: str,
    max_bytes: int,
) -> StoredMedia:
    """Validate an uploaded file and hand it to the storage backend.

    Args:
        storage: Target backend
        upload: File received by the endpoint
        kind: "image" or "video"
        max_bytes: Largest accepted payload

    Raises:
        InvalidArgument: On a missing, empty, oversized or wrongly typed file
    """
    allowed = IMAGE_EXTENSIONS if kind == "image" else VIDEO_EXTENSIONS
    ext = os.path.splitext(upload.filename or "")[1].lower()
    if ext not in allowed:
        raise InvalidArgument(f"Unsupported {kind} file type")

    data = await upload.read()
    if not data:
        raise InvalidArgument(f"Empty {kind} file")
    if len(data) > max_bytes:
        raise InvalidArgument(f"{kind.capitalize()} file is too large")

    return await storage.save(f"{uuid.uuid4().hex}{ext}", data, upload.content_type)


async def discard_media(storage: MediaStorage, url: str | None) -> None:
    """Best-effort removal of a superseded file; failures are only logged."""
    if not url:
        return
    try:
        await storage.delete(url)
    except Exception:
        logger.warning(f"Failed to delete superseded media: {url}", exc_info=True)
