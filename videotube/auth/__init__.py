"""Authentication module for the VideoTube API."""

from videotube.auth.dependencies import require_user

__all__ = ["require_user"]
