from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


# --- User / profile ---

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(max_length=255)
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    bio: str | None = None
    image: str | None = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuthorResponse(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(AuthorResponse):
    # Relative to the viewer; always False for anonymous requests.
    following: bool = False


class FollowStatus(BaseModel):
    is_followed: bool


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=55)
    body: str = Field(min_length=1)


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, min_length=1, max_length=55)
    body: str | None = Field(None, min_length=1)


class ArticleResponse(BaseModel):
    slug: str
    title: str
    description: str
    body: str
    created_at: datetime
    updated_at: datetime | None = None
    author: AuthorResponse | None = None
    model_config = ConfigDict(from_attributes=True)


class AnnotatedArticle(ArticleResponse):
    """An article as seen by one viewer; built per page, never stored."""

    is_favorited: bool = False
    favorites_count: int = 0


class FavoriteStatus(BaseModel):
    is_favorite: bool


# --- Pagination ---

class PageMeta(BaseModel):
    per_page: int
    has_more: bool
    next_cursor: str | None = None
    prev_cursor: str | None = None


class ArticlePage(BaseModel):
    data: list[AnnotatedArticle]
    meta: PageMeta
