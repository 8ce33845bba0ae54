"""
User service: the user directory.

Covers user records and the directed follow graph.  Follow and unfollow
are idempotent single-row writes; the composite primary key on
``user_follows`` guarantees one edge per (follower, followed) pair.

Username and email uniqueness is enforced at the database level; the
router translates the resulting ``IntegrityError`` into a 409.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.database import insert_edge
from articlefeed.errors import NotFound, ValidationError
from articlefeed.models import User, user_follows
from articlefeed.schemas import ProfileResponse, UserCreate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_username(db: AsyncSession, username: str) -> User:
    """Return the user named *username*; raise ``NotFound`` otherwise."""
    q = select(User).where(User.username == username)
    user = (await db.execute(q)).scalar_one_or_none()
    if user is None:
        raise NotFound("User", username)
    return user


async def create_user(db: AsyncSession, data: UserCreate) -> User:
    user = User(
        username=data.username,
        email=data.email,
        bio=data.bio,
        image=data.image,
    )
    db.add(user)
    await db.flush()
    logger.info("User %s registered as %r", user.id, user.username)
    return user


# ---------------------------------------------------------------------------
# Follow graph
# ---------------------------------------------------------------------------

async def followed_ids(db: AsyncSession, user_id: int) -> set[int]:
    """Ids of every user *user_id* follows."""
    q = select(user_follows.c.followed_id).where(user_follows.c.follower_id == user_id)
    return set((await db.execute(q)).scalars().all())


async def follow_exists(db: AsyncSession, follower_id: int, followed_id: int) -> bool:
    q = select(user_follows.c.followed_id).where(
        user_follows.c.follower_id == follower_id,
        user_follows.c.followed_id == followed_id,
    )
    return (await db.execute(q)).first() is not None


async def follow(db: AsyncSession, follower: User, username: str) -> ProfileResponse:
    target = await get_user_by_username(db, username)
    if target.id == follower.id:
        raise ValidationError("Users cannot follow themselves")
    if await insert_edge(db, user_follows, follower_id=follower.id, followed_id=target.id):
        logger.info("User %s now follows user %s", follower.id, target.id)
    return _profile(target, following=True)


async def unfollow(db: AsyncSession, follower: User, username: str) -> ProfileResponse:
    target = await get_user_by_username(db, username)
    await db.execute(
        delete(user_follows).where(
            user_follows.c.follower_id == follower.id,
            user_follows.c.followed_id == target.id,
        )
    )
    return _profile(target, following=False)


async def list_followers(db: AsyncSession, username: str) -> list[str]:
    """Usernames following *username*, oldest edge first."""
    user = await get_user_by_username(db, username)
    q = (
        select(User.username)
        .join(user_follows, user_follows.c.follower_id == User.id)
        .where(user_follows.c.followed_id == user.id)
        .order_by(user_follows.c.created_at, User.id)
    )
    return list((await db.execute(q)).scalars().all())


async def list_followings(db: AsyncSession, username: str) -> list[str]:
    """Usernames *username* follows, oldest edge first."""
    user = await get_user_by_username(db, username)
    q = (
        select(User.username)
        .join(user_follows, user_follows.c.followed_id == User.id)
        .where(user_follows.c.follower_id == user.id)
        .order_by(user_follows.c.created_at, User.id)
    )
    return list((await db.execute(q)).scalars().all())


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def _profile(user: User, following: bool) -> ProfileResponse:
    return ProfileResponse(
        username=user.username,
        bio=user.bio,
        image=user.image,
        following=following,
    )


async def get_profile(db: AsyncSession, username: str, viewer_id: int | None = None) -> ProfileResponse:
    user = await get_user_by_username(db, username)
    following = False
    if viewer_id is not None and viewer_id != user.id:
        following = await follow_exists(db, viewer_id, user.id)
    return _profile(user, following)
