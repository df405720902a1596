from conftest import seed_novel
from novel_api.services.navigation_service import get_chapter_navigation, get_total_chapters
from novel_api.services.unlock_service import ChapterUnlockService


def _numbers(nav):
    return (
        nav["prev_chapter"].chapter_number if nav["prev_chapter"] else None,
        nav["next_chapter"].chapter_number if nav["next_chapter"] else None,
    )


async def test_navigation_skips_locked_chapters(session_factory, future):
    seed = await seed_novel(session_factory, chapters=[
        (1, None, None),
        (2, None, None),
        (3, future, None),
        (4, None, None),
        (5, None, None),
    ])

    async with session_factory() as db:
        assert _numbers(await get_chapter_navigation(db, seed.reader_id, seed.novel_slug, 2)) == (1, 4)
        assert _numbers(await get_chapter_navigation(db, None, seed.novel_slug, 4)) == (2, 5)
        assert _numbers(await get_chapter_navigation(db, None, seed.novel_slug, 1)) == (None, 2)
        assert _numbers(await get_chapter_navigation(db, None, seed.novel_slug, 5)) == (4, None)
        # 잠긴 회차 자체에서 출발해도 가장 가까운 열람 가능 회차로 이동
        assert _numbers(await get_chapter_navigation(db, None, seed.novel_slug, 3)) == (2, 4)
        assert await get_total_chapters(db, None, seed.novel_slug) == 4


async def test_unlocked_chapter_joins_navigation(session_factory, future):
    seed = await seed_novel(session_factory, reader_coins=10, chapters=[
        (1, None, None),
        (2, None, None),
        (3, future, None),
        (4, future, None),
    ])

    async with session_factory() as db:
        await ChapterUnlockService(db).unlock(seed.reader_id, seed.novel_slug, 3)

    async with session_factory() as db:
        assert _numbers(await get_chapter_navigation(db, seed.reader_id, seed.novel_slug, 2)) == (1, 3)
        assert _numbers(await get_chapter_navigation(db, seed.reader_id, seed.novel_slug, 3)) == (2, None)
        assert _numbers(await get_chapter_navigation(db, None, seed.novel_slug, 2)) == (1, None)
        assert await get_total_chapters(db, seed.reader_id, str(seed.novel_id)) == 3
        assert await get_total_chapters(db, None, str(seed.novel_id)) == 2


async def test_unknown_novel_is_neutral(session_factory):
    async with session_factory() as db:
        assert _numbers(await get_chapter_navigation(db, None, "missing-novel", 1)) == (None, None)
        assert await get_total_chapters(db, None, "missing-novel") == 0


async def test_novel_without_chapters(session_factory):
    seed = await seed_novel(session_factory)

    async with session_factory() as db:
        assert _numbers(await get_chapter_navigation(db, None, seed.novel_slug, 1)) == (None, None)
        assert await get_total_chapters(db, None, seed.novel_slug) == 0
