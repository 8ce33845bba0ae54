"""
Ordering key shared by every article listing.

Articles are totally ordered by ``(created_at DESC, id DESC)``.
``created_at`` alone is not unique, so the id breaks ties; no two rows
ever compare equal, which is what lets a cursor name an exact boundary.
Bounds are strict inequalities on that immutable pair rather than
offsets, so rows inserted between two page fetches land wholly on one
side of the boundary.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from sqlalchemy import Select, and_, or_

from articlefeed.models import Article

Direction = Literal["after", "before"]

AFTER: Direction = "after"
BEFORE: Direction = "before"

# Embedded in every cursor; a cursor minted under another order is rejected.
ORDER_SIGNATURE = "created_at:desc,id:desc"


@dataclass(frozen=True)
class Position:
    """A point in the ordering key plus the side of it a page should read."""

    created_at: datetime
    id: int
    direction: Direction = AFTER


def position_of(article: Article, direction: Direction = AFTER) -> Position:
    return Position(created_at=article.created_at, id=article.id, direction=direction)


def apply_order(query: Select, reverse: bool = False) -> Select:
    """Order *query* by the key, or by its exact inverse when *reverse* is set."""
    if reverse:
        return query.order_by(Article.created_at.asc(), Article.id.asc())
    return query.order_by(Article.created_at.desc(), Article.id.desc())


def bound(position: Position):
    """
    Return the predicate selecting rows strictly past *position*.

    ``"after"`` means later in key order (older rows); ``"before"`` means
    earlier (newer rows).  Written as an OR of comparisons instead of a
    row-value tuple so PostgreSQL and SQLite render it the same way.
    """
    ts, ident = position.created_at, position.id
    if position.direction == AFTER:
        return or_(
            Article.created_at < ts,
            and_(Article.created_at == ts, Article.id < ident),
        )
    return or_(
        Article.created_at > ts,
        and_(Article.created_at == ts, Article.id > ident),
    )
