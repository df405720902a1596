from datetime import datetime, timedelta, timezone
import uuid

import pytest
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from conftest import seed_novel
from novel_api.models import Chapter
from novel_api.services.entitlement_service import (
    generate_chapter_slug,
    generate_novel_slug,
    get_chapter,
    get_unlocked_chapter_numbers,
    has_unlock,
    is_accessible,
    is_chapter_accessible,
    list_accessible,
    list_chapters,
    parse_chapter_ref,
    resolve_novel,
)
from novel_api.services.unlock_service import ChapterUnlockService


NOW = datetime(2030, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class BrokenSession:
    async def execute(self, *args, **kwargs):
        raise SQLAlchemyError("database is gone")


def test_publish_boundary_is_inclusive():
    assert is_chapter_accessible(Chapter(publish_at=NOW), NOW, has_unlock=False) is True
    assert is_chapter_accessible(Chapter(publish_at=NOW + timedelta(microseconds=1)), NOW, has_unlock=False) is False
    assert is_chapter_accessible(Chapter(publish_at=None), NOW, has_unlock=False) is True


def test_unlock_grants_access_to_unpublished_chapter():
    assert is_chapter_accessible(Chapter(publish_at=NOW + timedelta(days=365)), NOW, has_unlock=True) is True


def test_naive_timestamps_are_treated_as_utc():
    naive = datetime(2030, 1, 1, 12, 0, 0)
    assert is_chapter_accessible(Chapter(publish_at=naive), NOW, has_unlock=False) is True
    assert is_chapter_accessible(Chapter(publish_at=naive + timedelta(seconds=1)), NOW, has_unlock=False) is False


@pytest.mark.parametrize("ref, expected", [
    ("12", 12),
    ("c12", 12),
    ("C3", 3),
    ("c12-the-return", 12),
    (7, 7),
    ("chapter", None),
    ("", None),
    ("c", None),
    (None, None),
    (-1, None),
    ("c2147483647", 2147483647),
    ("c2147483648", None),
    ("c" + "9" * 25, None),
    ("9" * 5000, None),
    (2**31, None),
])
def test_parse_chapter_ref(ref, expected):
    assert parse_chapter_ref(ref) == expected


def test_slugs():
    assert generate_chapter_slug(12) == "c12"
    assert generate_chapter_slug(12, "The Return!") == "c12-the-return"
    assert generate_novel_slug("  My  Hero's -- Journey ") == "my-heros-journey"


async def test_resolve_novel_by_id_or_slug(session_factory):
    seed = await seed_novel(session_factory)

    async with session_factory() as db:
        by_slug = await resolve_novel(db, seed.novel_slug)
        by_id = await resolve_novel(db, str(seed.novel_id))
        by_uuid = await resolve_novel(db, seed.novel_id)
        missing = await resolve_novel(db, str(uuid.uuid4()))
        blank = await resolve_novel(db, "  ")

    assert by_slug.id == by_id.id == by_uuid.id == seed.novel_id
    assert missing is None
    assert blank is None


async def test_anonymous_reader_sees_only_published(session_factory):
    seed = await seed_novel(session_factory, chapters=[
        (1, None, None),
        (2, NOW, None),
        (3, NOW + timedelta(microseconds=1), None),
    ])

    async with session_factory() as db:
        assert await is_accessible(db, None, seed.novel_slug, 1, now=NOW) is True
        assert await is_accessible(db, None, seed.novel_slug, 2, now=NOW) is True
        assert await is_accessible(db, None, seed.novel_slug, 3, now=NOW) is False
        assert await is_accessible(db, None, seed.novel_slug, 4, now=NOW) is False
        assert await is_accessible(db, None, "missing-novel", 1, now=NOW) is False


async def test_unlock_keeps_access_after_publish_date_moves(session_factory, future):
    seed = await seed_novel(session_factory, reader_coins=10, chapters=[(6, future, None)])

    async with session_factory() as db:
        await ChapterUnlockService(db).unlock(seed.reader_id, seed.novel_slug, 6)

    async with session_factory() as db:
        await db.execute(
            update(Chapter)
            .where(Chapter.novel_id == seed.novel_id, Chapter.chapter_number == 6)
            .values(publish_at=datetime(2999, 1, 1, tzinfo=timezone.utc))
        )
        await db.commit()

    async with session_factory() as db:
        assert await is_accessible(db, seed.reader_id, seed.novel_slug, 6) is True
        assert await is_accessible(db, None, seed.novel_slug, 6) is False
        assert await is_accessible(db, seed.author_id, seed.novel_slug, 6) is False


async def test_list_accessible_is_ordered_and_includes_unlocks(session_factory, future):
    seed = await seed_novel(session_factory, reader_coins=10, chapters=[
        (3, None, None),
        (1, None, None),
        (4, future, None),
        (2, future, None),
    ])

    async with session_factory() as db:
        await ChapterUnlockService(db).unlock(seed.reader_id, seed.novel_slug, 2)

    async with session_factory() as db:
        anonymous = await list_accessible(db, None, seed.novel_slug)
        reader = await list_accessible(db, seed.reader_id, str(seed.novel_id))
        missing = await list_accessible(db, seed.reader_id, "missing-novel")

    assert [ch.chapter_number for ch in anonymous] == [1, 3]
    assert [ch.chapter_number for ch in reader] == [1, 2, 3]
    assert missing == []


async def test_list_chapters_reports_lock_state(session_factory, future):
    seed = await seed_novel(session_factory, reader_coins=10, chapters=[
        (1, None, None),
        (2, future, None),
        (3, future, 8),
    ])

    async with session_factory() as db:
        await ChapterUnlockService(db).unlock(seed.reader_id, seed.novel_slug, 2)

    async with session_factory() as db:
        items = await list_chapters(db, seed.reader_id, seed.novel_slug)
        assert await list_chapters(db, seed.reader_id, "missing-novel") is None

    by_number = {item.chapter_number: item for item in items}
    assert by_number[1].is_locked is False and by_number[1].is_published is True
    assert by_number[2].is_locked is False and by_number[2].is_unlocked is True
    assert by_number[3].is_locked is True and by_number[3].price == 8
    assert by_number[2].slug == "c2-chapter-2"


async def test_get_chapter_hides_content_while_locked(session_factory, future):
    seed = await seed_novel(session_factory, reader_coins=10, chapters=[(1, None, None), (2, future, None)])

    async with session_factory() as db:
        free = await get_chapter(db, None, seed.novel_slug, "c1")
        locked = await get_chapter(db, seed.reader_id, seed.novel_slug, "c2")
        bad_ref = await get_chapter(db, None, seed.novel_slug, "intro")
        missing = await get_chapter(db, None, seed.novel_slug, "c9")

    assert free.content == "content of chapter 1"
    assert free.novel.slug == seed.novel_slug
    assert locked.is_locked is True
    assert locked.content is None
    assert bad_ref is None
    assert missing is None

    async with session_factory() as db:
        await ChapterUnlockService(db).unlock(seed.reader_id, seed.novel_slug, 2)
    async with session_factory() as db:
        unlocked = await get_chapter(db, seed.reader_id, seed.novel_slug, "c2-chapter-2")

    assert unlocked.is_locked is False
    assert unlocked.content == "content of chapter 2"


async def test_unlock_lookup_failure_degrades_to_locked():
    novel_id = uuid.uuid4()
    reader_id = uuid.uuid4()

    assert await has_unlock(BrokenSession(), reader_id, novel_id, 1) is False
    assert await get_unlocked_chapter_numbers(BrokenSession(), reader_id, novel_id) == set()


async def test_anonymous_reader_never_queries_unlocks():
    # 세션을 건드리면 예외가 나도록 해서 조회 자체가 없음을 확인
    class ExplodingSession:
        async def execute(self, *args, **kwargs):
            raise AssertionError("unlock table must not be consulted for anonymous readers")

    assert await has_unlock(ExplodingSession(), None, uuid.uuid4(), 1) is False
    assert await get_unlocked_chapter_numbers(ExplodingSession(), None, uuid.uuid4()) == set()


async def test_oversized_chapter_number_is_not_accessible(session_factory):
    seed = await seed_novel(session_factory, chapters=[(1, None, None)])

    async with session_factory() as db:
        assert await is_accessible(db, None, seed.novel_slug, 2**40) is False
