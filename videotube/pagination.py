"""Offset pagination shared by every listing endpoint."""

from dataclasses import dataclass
from typing import Any

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from videotube.config import get_settings
from videotube.errors import InvalidArgument


@dataclass(frozen=True)
class PageParams:
    """1-based page number and page size."""

    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(default=1, description="Page number, starting at 1"),
    limit: int | None = Query(default=None, description="Items per page"),
) -> PageParams:
    """FastAPI dependency validating ``page`` and ``limit``.

    Out-of-range values are rejected rather than clamped.
    """
    settings = get_settings()
    if limit is None:
        limit = settings.page_size_default
    if page < 1:
        raise InvalidArgument("page must be at least 1")
    if limit < 1 or limit > settings.page_size_max:
        raise InvalidArgument(f"limit must be between 1 and {settings.page_size_max}")
    return PageParams(page=page, limit=limit)


async def paginate(
    db: AsyncSession,
    stmt: Select[Any],
    params: PageParams,
    random: bool = False,
) -> tuple[list[Any], int]:
    """Run one window of ``stmt`` and count every row it matches.

    With ``random`` the window is a random sample of ``params.limit`` rows
    and the page offset is ignored.

    Returns:
        Tuple of (rows, total matching rows)
    """
    total = await db.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    )

    if random:
        stmt = stmt.order_by(None).order_by(func.random()).limit(params.limit)
    else:
        stmt = stmt.offset(params.offset).limit(params.limit)

    result = await db.execute(stmt)
    return list(result.all()), total or 0
