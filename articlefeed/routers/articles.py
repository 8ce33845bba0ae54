from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.database import get_db
from articlefeed.dependencies import PageParams, get_viewer, require_viewer
from articlefeed.models import User
from articlefeed.schemas import (
    AnnotatedArticle,
    ArticleCreate,
    ArticlePage,
    ArticleResponse,
    ArticleUpdate,
    FavoriteStatus,
)
from articlefeed.services import article_service, favorite_service, listing_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


def _viewer_id(viewer: User | None) -> int | None:
    return viewer.id if viewer is not None else None


# --- Listings (static paths first so they are not captured by /{slug}) ---

@router.get("", response_model=ArticlePage)
async def list_articles(
    author: int | None = Query(None, description="Only articles by this user id."),
    page: PageParams = Depends(),
    viewer: User | None = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.list_articles(
        db, _viewer_id(viewer), author_id=author, cursor=page.cursor, per_page=page.limit
    )


@router.get("/feed", response_model=ArticlePage)
async def feed(
    page: PageParams = Depends(),
    viewer: User | None = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.feed(
        db, _viewer_id(viewer), cursor=page.cursor, per_page=page.limit
    )


@router.get("/favorites", response_model=ArticlePage)
async def favorites_feed(
    page: PageParams = Depends(),
    viewer: User | None = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.favorites_feed(
        db, _viewer_id(viewer), cursor=page.cursor, per_page=page.limit
    )


# --- Single article ---

@router.get("/{slug}", response_model=ArticleResponse)
async def show_article(slug: str, db: AsyncSession = Depends(get_db)):
    return await listing_service.show(db, slug)


@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: ArticleCreate,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, viewer, data)


@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    data: ArticleUpdate,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.update_article(db, slug, viewer, data)


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, slug, viewer)


# --- Favorites ---

@router.get("/{slug}/favorite", response_model=FavoriteStatus)
async def check_favorite(
    slug: str,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    return FavoriteStatus(is_favorite=await favorite_service.is_favorited(db, slug, viewer.id))


@router.post("/{slug}/favorite", response_model=AnnotatedArticle)
async def favorite_article(
    slug: str,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await favorite_service.favorite(db, slug, viewer)


@router.delete("/{slug}/favorite", response_model=AnnotatedArticle)
async def unfavorite_article(
    slug: str,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await favorite_service.unfavorite(db, slug, viewer)
