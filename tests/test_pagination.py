"""
Pagination engine tests: ordering, cursor bounds, clamping and the
page-boundary edge cases, driven directly against the engine with a
database session.

Articles are created with explicit timestamps (and ids where the test
is about tie-breaking) so the expected order is known up front.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.cursor import codec
from articlefeed.errors import InvalidCursor
from articlefeed.middleware import current_query_count, reset_query_count
from articlefeed.models import Article, User
from articlefeed.ordering import AFTER, BEFORE
from articlefeed.pagination import clamp_per_page, paginate

BASE = datetime(2024, 1, 1, 12, 0, 0)


def at(seconds: int) -> datetime:
    return BASE + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(db: AsyncSession, username: str = "pager") -> User:
    user = User(username=username, email=f"{username}@example.com")
    db.add(user)
    await db.flush()
    return user


async def _create_article(
    db: AsyncSession, author: User, slug: str, t: int, article_id: int | None = None
) -> Article:
    fields = dict(
        slug=slug,
        title=slug.title(),
        description="desc",
        body="body",
        created_at=at(t),
        author=author,
    )
    if article_id is not None:
        fields["id"] = article_id
    article = Article(**fields)
    db.add(article)
    await db.flush()
    return article


async def _walk(db: AsyncSession, per_page: int) -> list[str]:
    """Follow next_cursor from the first page to the last; return all slugs."""
    slugs: list[str] = []
    cursor = None
    while True:
        page = await paginate(db, select(Article), scope="all", cursor=cursor, per_page=per_page)
        slugs.extend(a.slug for a in page.items)
        if page.next_cursor is None:
            return slugs
        cursor = page.next_cursor


# ---------------------------------------------------------------------------
# Ordering key
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_timestamp_ties_break_on_id_descending(db_session: AsyncSession):
    """A(t=100,id=5), B(t=100,id=3), C(t=90,id=9) page as [A, B] then [C]."""
    author = await _create_user(db_session)
    await _create_article(db_session, author, "a", 100, article_id=5)
    await _create_article(db_session, author, "b", 100, article_id=3)
    await _create_article(db_session, author, "c", 90, article_id=9)

    first = await paginate(db_session, select(Article), scope="all", per_page=2)
    assert [a.slug for a in first.items] == ["a", "b"]
    assert first.has_more is True
    assert first.prev_cursor is None

    position = codec.decode(first.next_cursor, "all")
    assert (position.created_at, position.id) == (at(100), 3)
    assert position.direction == AFTER

    second = await paginate(
        db_session, select(Article), scope="all", cursor=first.next_cursor, per_page=2
    )
    assert [a.slug for a in second.items] == ["c"]
    assert second.has_more is False
    assert second.next_cursor is None
    assert second.prev_cursor is not None


@pytest.mark.asyncio
async def test_walk_covers_every_article_once(db_session: AsyncSession):
    author = await _create_user(db_session)
    expected = []
    # Three articles per timestamp so every page boundary falls inside a tie.
    for i in range(12):
        article = await _create_article(db_session, author, f"art-{i}", t=(i // 3) * 10)
        expected.append(article)
    expected.sort(key=lambda a: (a.created_at, a.id), reverse=True)

    for per_page in (1, 2, 5, 12, 50):
        assert await _walk(db_session, per_page) == [a.slug for a in expected]


@pytest.mark.asyncio
async def test_positions_from_pages_round_trip(db_session: AsyncSession):
    author = await _create_user(db_session)
    for i in range(3):
        await _create_article(db_session, author, f"rt-{i}", t=i)

    page = await paginate(db_session, select(Article), scope="all", per_page=1)
    token = page.next_cursor
    assert codec.encode(codec.decode(token, "all"), "all") == token


# ---------------------------------------------------------------------------
# Page boundaries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_empty_result_set(db_session: AsyncSession):
    page = await paginate(db_session, select(Article), scope="all", per_page=5)
    assert page.items == []
    assert page.has_more is False
    assert page.next_cursor is None
    assert page.prev_cursor is None


@pytest.mark.asyncio
async def test_exactly_per_page_rows_left_has_no_phantom_page(db_session: AsyncSession):
    author = await _create_user(db_session)
    for i in range(4):
        await _create_article(db_session, author, f"ex-{i}", t=i)

    first = await paginate(db_session, select(Article), scope="all", per_page=2)
    assert first.has_more is True

    second = await paginate(
        db_session, select(Article), scope="all", cursor=first.next_cursor, per_page=2
    )
    assert len(second.items) == 2
    assert second.has_more is False
    assert second.next_cursor is None


def test_per_page_clamping():
    assert clamp_per_page(None) == 10
    assert clamp_per_page(0) == 1
    assert clamp_per_page(-5) == 1
    assert clamp_per_page(37) == 37
    assert clamp_per_page(100) == 100
    assert clamp_per_page(150) == 100


@pytest.mark.asyncio
async def test_per_page_above_ceiling_behaves_like_ceiling(db_session: AsyncSession):
    author = await _create_user(db_session)
    db_session.add_all(
        Article(
            slug=f"bulk-{i}", title=f"Bulk {i}", description="d", body="b",
            created_at=at(i), author=author,
        )
        for i in range(105)
    )
    await db_session.flush()

    clamped = await paginate(db_session, select(Article), scope="all", per_page=150)
    ceiling = await paginate(db_session, select(Article), scope="all", per_page=100)
    assert clamped.per_page == ceiling.per_page == 100
    assert [a.id for a in clamped.items] == [a.id for a in ceiling.items]
    assert clamped.has_more is ceiling.has_more is True
    assert codec.decode(clamped.next_cursor, "all") == codec.decode(ceiling.next_cursor, "all")


@pytest.mark.asyncio
async def test_one_statement_per_page(db_session: AsyncSession):
    author = await _create_user(db_session)
    for i in range(30):
        await _create_article(db_session, author, f"q-{i}", t=i)

    for per_page in (1, 10, 30):
        reset_query_count()
        page = await paginate(db_session, select(Article), scope="all", per_page=per_page)
        assert current_query_count() == 1
        # Author is joined in the same statement.
        assert all(a.author is not None for a in page.items)


# ---------------------------------------------------------------------------
# Concurrent writes between page fetches
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_inserts_between_pages_are_never_duplicated_or_skipped(db_session: AsyncSession):
    author = await _create_user(db_session)
    for i in range(6):
        await _create_article(db_session, author, f"orig-{i}", t=(i + 1) * 10)

    first = await paginate(db_session, select(Article), scope="all", per_page=2)
    assert [a.slug for a in first.items] == ["orig-5", "orig-4"]
    boundary = codec.decode(first.next_cursor, "all")

    # Newer than everything: sorts before the boundary, never shows up later.
    await _create_article(db_session, author, "newest", t=1000)
    # Same timestamp as the boundary row but a higher id: still before it.
    await _create_article(db_session, author, "tied", t=50)
    # Older than the boundary: delivered exactly once on a later page.
    await _create_article(db_session, author, "older", t=35)
    assert boundary.created_at == at(50)

    delivered = [a.slug for a in first.items]
    cursor = first.next_cursor
    while cursor is not None:
        page = await paginate(db_session, select(Article), scope="all", cursor=cursor, per_page=2)
        delivered.extend(a.slug for a in page.items)
        cursor = page.next_cursor

    assert len(delivered) == len(set(delivered))
    assert delivered == ["orig-5", "orig-4", "orig-3", "older", "orig-2", "orig-1", "orig-0"]


@pytest.mark.asyncio
async def test_deleted_boundary_row_still_bounds_next_page(db_session: AsyncSession):
    author = await _create_user(db_session)
    articles = [await _create_article(db_session, author, f"del-{i}", t=i) for i in range(4)]

    first = await paginate(db_session, select(Article), scope="all", per_page=1)
    assert first.items == [articles[3]]

    # Remove both the row the cursor points at and the next one.
    await db_session.delete(articles[3])
    await db_session.delete(articles[2])
    await db_session.flush()

    second = await paginate(
        db_session, select(Article), scope="all", cursor=first.next_cursor, per_page=1
    )
    assert [a.slug for a in second.items] == ["del-1"]
    assert second.has_more is True


# ---------------------------------------------------------------------------
# Backward paging
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_prev_cursor_returns_previous_page(db_session: AsyncSession):
    author = await _create_user(db_session)
    for i in range(5):
        await _create_article(db_session, author, f"bk-{i}", t=i)

    first = await paginate(db_session, select(Article), scope="all", per_page=2)
    second = await paginate(
        db_session, select(Article), scope="all", cursor=first.next_cursor, per_page=2
    )
    assert [a.slug for a in second.items] == ["bk-2", "bk-1"]
    assert codec.decode(second.prev_cursor, "all").direction == BEFORE

    back = await paginate(
        db_session, select(Article), scope="all", cursor=second.prev_cursor, per_page=2
    )
    assert [a.slug for a in back.items] == [a.slug for a in first.items]
    assert back.prev_cursor is None
    assert back.has_more is True

    # Going forward again from the backward page lands on the second page.
    again = await paginate(
        db_session, select(Article), scope="all", cursor=back.next_cursor, per_page=2
    )
    assert [a.slug for a in again.items] == ["bk-2", "bk-1"]


@pytest.mark.asyncio
async def test_backward_page_with_more_before_has_prev_cursor(db_session: AsyncSession):
    author = await _create_user(db_session)
    for i in range(6):
        await _create_article(db_session, author, f"mb-{i}", t=i)

    cursor = None
    for _ in range(3):
        page = await paginate(db_session, select(Article), scope="all", cursor=cursor, per_page=2)
        cursor = page.next_cursor
    # ``page`` is now the third page: mb-1, mb-0.
    back = await paginate(
        db_session, select(Article), scope="all", cursor=page.prev_cursor, per_page=2
    )
    assert [a.slug for a in back.items] == ["mb-3", "mb-2"]
    assert back.prev_cursor is not None


# ---------------------------------------------------------------------------
# Invalid cursors
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_invalid_cursor_fails_instead_of_restarting(db_session: AsyncSession):
    author = await _create_user(db_session)
    await _create_article(db_session, author, "only", t=1)
    with pytest.raises(InvalidCursor):
        await paginate(db_session, select(Article), scope="all", cursor="not-a-cursor")


@pytest.mark.asyncio
async def test_cursor_from_other_scope_is_rejected(db_session: AsyncSession):
    author = await _create_user(db_session)
    for i in range(3):
        await _create_article(db_session, author, f"sc-{i}", t=i)

    page = await paginate(db_session, select(Article), scope="all", per_page=1)
    with pytest.raises(InvalidCursor):
        await paginate(
            db_session,
            select(Article).where(Article.user_id == author.id),
            scope=f"author:{author.id}",
            cursor=page.next_cursor,
        )
