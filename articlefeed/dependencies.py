from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.config import settings
from articlefeed.database import get_db
from articlefeed.errors import Unauthenticated
from articlefeed.models import User
from articlefeed.services import user_service


class PageParams:
    """
    Cursor pagination query parameters shared by every listing route.

    Attributes
    ----------
    limit:
        Page size.  Values below 1 are rejected with a 422; values above
        ``settings.MAX_PAGE_SIZE`` are clamped down rather than rejected.
    cursor:
        Opaque token from a previous page's ``next_cursor`` or
        ``prev_cursor``.  An empty string means "first page".
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of articles per page (values above 100 are clamped).",
        ),
        cursor: str | None = Query(
            None,
            description="Opaque cursor from a previous response; drop it when filters change.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.cursor = cursor or None


async def get_viewer(
    x_user_id: int | None = Header(
        None,
        alias="X-User-Id",
        description="Id of the calling user, set by the authenticating gateway.",
    ),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """The calling user, or None for anonymous requests."""
    if x_user_id is None:
        return None
    viewer = await user_service.get_user(db, x_user_id)
    if viewer is None:
        raise Unauthenticated("Unknown viewer")
    return viewer


async def require_viewer(viewer: User | None = Depends(get_viewer)) -> User:
    if viewer is None:
        raise Unauthenticated()
    return viewer
