"""
Cursor pagination engine.

``paginate`` takes an already-filtered ``SELECT Article`` and turns it
into one page in ordering-key order:

1. decode the cursor (if any) into a position and add the strict bound;
2. order by the key (inverted when paging backwards);
3. fetch ``per_page + 1`` rows with the author joined in the same query;
4. the extra row, if present, only signals that another page exists;
5. mint ``next_cursor`` / ``prev_cursor`` from the last / first rows.

The engine holds no state between calls.  An invalid cursor fails the
request instead of silently restarting from the first page.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from articlefeed.config import settings
from articlefeed.cursor import codec
from articlefeed.models import Article
from articlefeed.ordering import AFTER, BEFORE, apply_order, bound, position_of

logger = logging.getLogger(__name__)


@dataclass
class Page:
    items: list[Article] = field(default_factory=list)
    per_page: int = settings.DEFAULT_PAGE_SIZE
    has_more: bool = False
    next_cursor: Optional[str] = None
    prev_cursor: Optional[str] = None


def clamp_per_page(per_page: int | None) -> int:
    """Default a missing page size and clamp it into ``[1, MAX_PAGE_SIZE]``."""
    if per_page is None:
        return settings.DEFAULT_PAGE_SIZE
    return max(1, min(per_page, settings.MAX_PAGE_SIZE))


async def paginate(
    db: AsyncSession,
    query: Select,
    *,
    scope: str,
    cursor: str | None = None,
    per_page: int | None = None,
) -> Page:
    """
    Return one page of *query* in ordering-key order.

    *scope* identifies the listing and its filter values; cursors are only
    accepted by the scope that minted them.  Raises ``InvalidCursor``.
    """
    per_page = clamp_per_page(per_page)
    position = codec.decode(cursor, scope) if cursor is not None else None
    backwards = position is not None and position.direction == BEFORE

    if position is not None:
        query = query.where(bound(position))
    query = (
        apply_order(query, reverse=backwards)
        .options(joinedload(Article.author))
        .limit(per_page + 1)
    )

    result = await db.execute(query)
    rows = list(result.unique().scalars().all())

    overflow = len(rows) > per_page
    rows = rows[:per_page]
    if backwards:
        rows.reverse()

    page = Page(items=rows, per_page=per_page)
    if not rows:
        logger.debug("Empty page for scope=%r", scope)
        return page

    first, last = rows[0], rows[-1]
    if backwards:
        # Reached from a later page, so rows always exist after this one.
        page.next_cursor = codec.encode(position_of(last, AFTER), scope)
        if overflow:
            page.prev_cursor = codec.encode(position_of(first, BEFORE), scope)
    else:
        if overflow:
            page.next_cursor = codec.encode(position_of(last, AFTER), scope)
        if position is not None:
            page.prev_cursor = codec.encode(position_of(first, BEFORE), scope)
    page.has_more = page.next_cursor is not None

    logger.debug(
        "Page scope=%r rows=%d has_more=%s backwards=%s",
        scope, len(rows), page.has_more, backwards,
    )
    return page
