"""
Favorite edges and the per-page favorite annotator.

``annotate`` is the only place viewer-relative article fields are
computed.  It turns a page of ORM articles into ``AnnotatedArticle``
response objects with a fixed number of statements per page:

* one ``COUNT ... GROUP BY article_id`` over the whole page, always;
* one ``SELECT article_id`` for the viewer's edges, only when there is
  a viewer.

Anonymous requests never touch the viewer lookup at all.
"""
import logging
from typing import Sequence

from sqlalchemy import func, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.database import insert_edge
from articlefeed.models import Article, User, article_favorites
from articlefeed.schemas import AnnotatedArticle
from articlefeed.services import article_service

logger = logging.getLogger(__name__)


async def annotate(
    db: AsyncSession,
    articles: Sequence[Article],
    viewer_id: int | None = None,
) -> list[AnnotatedArticle]:
    if not articles:
        return []
    ids = [a.id for a in articles]

    counts_q = (
        select(article_favorites.c.article_id, func.count())
        .where(article_favorites.c.article_id.in_(ids))
        .group_by(article_favorites.c.article_id)
    )
    counts: dict[int, int] = {
        article_id: count for article_id, count in (await db.execute(counts_q)).all()
    }

    favorited: set[int] = set()
    if viewer_id is not None:
        mine_q = select(article_favorites.c.article_id).where(
            article_favorites.c.user_id == viewer_id,
            article_favorites.c.article_id.in_(ids),
        )
        favorited = set((await db.execute(mine_q)).scalars().all())

    return [
        AnnotatedArticle.model_validate(article).model_copy(
            update={
                "is_favorited": article.id in favorited,
                "favorites_count": counts.get(article.id, 0),
            }
        )
        for article in articles
    ]


async def _edge_exists(db: AsyncSession, user_id: int, article_id: int) -> bool:
    q = select(article_favorites.c.article_id).where(
        article_favorites.c.user_id == user_id,
        article_favorites.c.article_id == article_id,
    )
    return (await db.execute(q)).first() is not None


async def is_favorited(db: AsyncSession, slug: str, user_id: int) -> bool:
    article = await article_service.get_article_by_slug(db, slug)
    return await _edge_exists(db, user_id, article.id)


async def favorite(db: AsyncSession, slug: str, user: User) -> AnnotatedArticle:
    """Attach the favorite edge (no-op when present) and return the annotated article."""
    article = await article_service.get_article_by_slug(db, slug)
    if await insert_edge(db, article_favorites, user_id=user.id, article_id=article.id):
        logger.info("User %s favorited article %s", user.id, slug)
    return (await annotate(db, [article], user.id))[0]


async def unfavorite(db: AsyncSession, slug: str, user: User) -> AnnotatedArticle:
    """Detach the favorite edge (no-op when absent) and return the annotated article."""
    article = await article_service.get_article_by_slug(db, slug)
    await db.execute(
        delete(article_favorites).where(
            article_favorites.c.user_id == user.id,
            article_favorites.c.article_id == article.id,
        )
    )
    return (await annotate(db, [article], user.id))[0]
