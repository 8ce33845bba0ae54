"""Feed selector: which authors make up a viewer's followed-authors feed."""
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.errors import Unauthenticated
from articlefeed.services import user_service


async def followed_author_ids(db: AsyncSession, viewer_id: int | None) -> set[int]:
    """
    Resolve the author set for *viewer_id* through the user directory.

    An empty set is a valid answer (the feed is then empty); a missing
    viewer is not.
    """
    if viewer_id is None:
        raise Unauthenticated("The feed requires a viewer")
    return await user_service.followed_ids(db, viewer_id)
