"""
Article service: the article store.

Design notes
------------
- Only the author may change or delete an article; anyone else gets
  ``Forbidden``.  ``created_at`` is never touched after insert because
  the listing cursors are built on it.
- Reads that feed a response join the author in the same statement
  (``joinedload``); relationships are ``lazy="noload"`` so nothing loads
  behind our back.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
- Every write to an article drops its cached ``show`` payload.
"""
import logging
import re
import time

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from articlefeed.cache import cache
from articlefeed.errors import Forbidden, NotFound, ValidationError
from articlefeed.models import Article, User, article_favorites
from articlefeed.schemas import ArticleCreate, ArticleUpdate

logger = logging.getLogger(__name__)

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

# Static path segments under /articles; a slug equal to one would be shadowed by its route.
RESERVED_SLUGS = frozenset({"feed", "favorites"})


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-") or "article"


async def _free_slug(db: AsyncSession, title: str, exclude_id: int | None = None) -> str:
    """Slug for *title*, suffixed with a timestamp when taken or reserved."""
    slug = slugify(title)
    if slug in RESERVED_SLUGS:
        return f"{slug}-{time.time_ns() // 1000}"
    q = select(Article.id).where(Article.slug == slug)
    if exclude_id is not None:
        q = q.where(Article.id != exclude_id)
    if (await db.execute(q)).first() is not None:
        slug = f"{slug}-{time.time_ns() // 1000}"
    return slug


async def get_article_by_slug(db: AsyncSession, slug: str) -> Article:
    """Return the article for *slug* with its author loaded; raise ``NotFound``."""
    q = select(Article).where(Article.slug == slug).options(joinedload(Article.author))
    article = (await db.execute(q)).scalar_one_or_none()
    if article is None:
        raise NotFound("Article", slug)
    return article


async def _get_owned_article(db: AsyncSession, slug: str, user: User) -> Article:
    article = await get_article_by_slug(db, slug)
    if article.user_id != user.id:
        raise Forbidden("Only the author may modify this article")
    return article


async def create_article(db: AsyncSession, author: User, data: ArticleCreate) -> Article:
    article = Article(
        title=data.title,
        slug=await _free_slug(db, data.title),
        description=data.description,
        body=data.body,
        author=author,
    )
    db.add(article)
    await db.flush()
    logger.info("Article %s created by user %s", article.slug, author.id)
    return article


async def update_article(
    db: AsyncSession, slug: str, user: User, data: ArticleUpdate
) -> Article:
    """
    Apply the fields explicitly set in *data*; a new title re-derives the slug.

    Raises ``ValidationError`` when nothing is provided.
    """
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No data provided or all fields are empty")

    article = await _get_owned_article(db, slug, user)
    for name, value in changes.items():
        setattr(article, name, value)
    if "title" in changes:
        article.slug = await _free_slug(db, changes["title"], exclude_id=article.id)

    await db.flush()
    await cache.mark_stale(db, slug, article.slug)
    return article


async def delete_article(db: AsyncSession, slug: str, user: User) -> None:
    """Delete the article and its favorite edges; cursors into the gap stay valid."""
    article = await _get_owned_article(db, slug, user)
    await db.execute(delete(article_favorites).where(article_favorites.c.article_id == article.id))
    await db.delete(article)
    await db.flush()
    await cache.mark_stale(db, slug)
    logger.info("Article %s deleted by user %s", slug, user.id)
