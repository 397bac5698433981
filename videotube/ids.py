"""Identifier helpers."""

import uuid

from videotube.errors import InvalidArgument


def uid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid.uuid4())


def parse_id(value: str | None, label: str = "ID") -> str:
    """Return the canonical form of a UUID identifier.

    Raises:
        InvalidArgument: If ``value`` is missing or not a UUID
    """
    if not value:
        raise InvalidArgument(f"Invalid {label}")
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise InvalidArgument(f"Invalid {label}") from None
