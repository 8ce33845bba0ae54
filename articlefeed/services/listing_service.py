"""
Listing service: the public article listings.

Each paginated listing differs only in its base filter and its scope
string; ordering, cursor handling and favorite annotation are shared:

    list_articles   all articles, or one author's     scope "all" / "author:<id>"
    feed            authors the viewer follows         scope "feed:<viewer>"
    favorites_feed  articles the viewer favorited      scope "favorites:<viewer>"

``show`` is the single-article read: not paginated, not annotated, cached.

The viewer is always an explicit argument, never ambient request state.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.cache import cache
from articlefeed.errors import Unauthenticated, ValidationError
from articlefeed.models import Article, article_favorites
from articlefeed.pagination import Page, paginate
from articlefeed.schemas import ArticlePage, ArticleResponse, PageMeta
from articlefeed.services import article_service, favorite_service, feed_service, user_service


async def _to_response(db: AsyncSession, page: Page, viewer_id: int | None) -> ArticlePage:
    return ArticlePage(
        data=await favorite_service.annotate(db, page.items, viewer_id),
        meta=PageMeta(
            per_page=page.per_page,
            has_more=page.has_more,
            next_cursor=page.next_cursor,
            prev_cursor=page.prev_cursor,
        ),
    )


async def list_articles(
    db: AsyncSession,
    viewer_id: int | None = None,
    author_id: int | None = None,
    cursor: str | None = None,
    per_page: int | None = None,
) -> ArticlePage:
    """All articles, optionally restricted to *author_id*."""
    query = select(Article)
    scope = "all"
    if author_id is not None:
        if await user_service.get_user(db, author_id) is None:
            raise ValidationError("Unknown author", details={"author": author_id})
        query = query.where(Article.user_id == author_id)
        scope = f"author:{author_id}"

    page = await paginate(db, query, scope=scope, cursor=cursor, per_page=per_page)
    return await _to_response(db, page, viewer_id)


async def feed(
    db: AsyncSession,
    viewer_id: int | None,
    cursor: str | None = None,
    per_page: int | None = None,
) -> ArticlePage:
    """Articles by authors *viewer_id* follows."""
    authors = await feed_service.followed_author_ids(db, viewer_id)
    query = select(Article).where(Article.user_id.in_(sorted(authors)))
    page = await paginate(db, query, scope=f"feed:{viewer_id}", cursor=cursor, per_page=per_page)
    return await _to_response(db, page, viewer_id)


async def favorites_feed(
    db: AsyncSession,
    viewer_id: int | None,
    cursor: str | None = None,
    per_page: int | None = None,
) -> ArticlePage:
    """Articles *viewer_id* has favorited, in the usual article order."""
    if viewer_id is None:
        raise Unauthenticated("The favorites feed requires a viewer")
    favorited = select(article_favorites.c.article_id).where(
        article_favorites.c.user_id == viewer_id
    )
    query = select(Article).where(Article.id.in_(favorited))
    page = await paginate(
        db, query, scope=f"favorites:{viewer_id}", cursor=cursor, per_page=per_page
    )
    return await _to_response(db, page, viewer_id)


async def show(db: AsyncSession, slug: str) -> dict:
    """
    Return the detail payload for *slug* (cache-aside).

    Carries no viewer-relative fields, so one cached payload serves every
    caller.  Raises ``NotFound``.
    """
    cached = await cache.get_detail(slug)
    if cached is not None:
        return cached

    article = await article_service.get_article_by_slug(db, slug)
    data = ArticleResponse.model_validate(article).model_dump(mode="json")
    await cache.set_detail(slug, data)
    return data
