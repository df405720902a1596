"""
회차 열람 권한 서비스

회차는 공개 시각이 지났거나(publish_at <= now) 독자가 코인으로 잠금 해제한
경우에만 열람 가능하다. 공개 여부는 저장된 플래그가 아니라 호출 시점의
현재 시각으로 판단한다.
"""

from datetime import datetime, timezone
from typing import List, Optional, Set, Union
import logging
import re
import uuid

from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.core.config import settings
from novel_api.models.chapter import Chapter
from novel_api.models.chapter_unlock import ChapterUnlock
from novel_api.models.novel import Novel
from novel_api.schemas.novel import ChapterDetailResponse, ChapterListItem, NovelResponse

logger = logging.getLogger(__name__)

_CHAPTER_REF_RE = re.compile(r"^c?(\d+)(?:-.*)?$", re.IGNORECASE)
# chapters.chapter_number 컬럼(INTEGER) 범위
MAX_CHAPTER_NUMBER = 2**31 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite는 tz 정보 없이 돌려주므로 UTC로 간주
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_published(chapter: Chapter, now: Optional[datetime] = None) -> bool:
    if chapter.publish_at is None:
        return True
    return _as_aware(chapter.publish_at) <= _as_aware(now or utcnow())


def is_chapter_accessible(chapter: Chapter, now: datetime, has_unlock: bool) -> bool:
    """열람 가능 여부 (순수 함수)"""
    return has_unlock or is_published(chapter, now)


def chapter_price(chapter: Chapter) -> int:
    """조기 열람 가격. 회차에 가격이 없으면 기본 가격"""
    if chapter.coins and chapter.coins > 0:
        return int(chapter.coins)
    return settings.DEFAULT_CHAPTER_UNLOCK_COST


def parse_chapter_ref(ref: Union[str, int, None]) -> Optional[int]:
    """'12', 'c12', 'c12-title' 형태의 회차 식별자를 회차 번호로 변환"""
    if ref is None or isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        number = ref
    else:
        match = _CHAPTER_REF_RE.match(str(ref).strip())
        digits = match.group(1) if match else ""
        if not digits or len(digits.lstrip("0")) > len(str(MAX_CHAPTER_NUMBER)):
            return None
        number = int(digits)
    return number if 0 <= number <= MAX_CHAPTER_NUMBER else None


def _slugify(text: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"\s+", "-", slug)
    return slug


def generate_chapter_slug(chapter_number: int, chapter_title: Optional[str] = None) -> str:
    base_slug = f"c{chapter_number}"
    if chapter_title:
        return f"{base_slug}-{_slugify(chapter_title)}"
    return base_slug


def generate_novel_slug(title: str) -> str:
    return re.sub(r"-+", "-", _slugify(title)).strip("-")


async def resolve_novel(db: AsyncSession, novel_ref: Union[str, uuid.UUID]) -> Optional[Novel]:
    """기본 키 또는 slug로 소설 조회 (한 번의 쿼리)"""
    ref = str(novel_ref).strip()
    if not ref:
        return None
    try:
        novel_uuid = uuid.UUID(ref)
    except ValueError:
        novel_uuid = None

    if novel_uuid is not None:
        condition = or_(Novel.id == novel_uuid, Novel.slug == ref)
    else:
        condition = Novel.slug == ref
    result = await db.execute(select(Novel).where(condition).limit(1))
    return result.scalars().first()


async def get_chapters(db: AsyncSession, novel_id: uuid.UUID) -> List[Chapter]:
    result = await db.execute(
        select(Chapter)
        .where(Chapter.novel_id == novel_id)
        .order_by(Chapter.chapter_number.asc())
    )
    return list(result.scalars().all())


async def get_chapter_by_number(db: AsyncSession, novel_id: uuid.UUID, chapter_number: int) -> Optional[Chapter]:
    result = await db.execute(
        select(Chapter).where(
            Chapter.novel_id == novel_id,
            Chapter.chapter_number == chapter_number,
        )
    )
    return result.scalar_one_or_none()


async def get_unlocked_chapter_numbers(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_id: uuid.UUID,
) -> Set[int]:
    """독자가 잠금 해제한 회차 번호 전체 (한 번의 쿼리)

    조회 실패 시 잠금 해제 없음으로 간주한다.
    """
    if reader_id is None:
        return set()
    try:
        result = await db.execute(
            select(ChapterUnlock.chapter_number).where(
                ChapterUnlock.novel_id == novel_id,
                ChapterUnlock.profile_id == reader_id,
            )
        )
        return set(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(f"[entitlement] unlock set lookup failed (reader={reader_id}, novel={novel_id}): {e}")
        return set()


async def has_unlock(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_id: uuid.UUID,
    chapter_number: int,
) -> bool:
    if reader_id is None:
        return False
    try:
        result = await db.execute(
            select(ChapterUnlock.id).where(
                ChapterUnlock.profile_id == reader_id,
                ChapterUnlock.novel_id == novel_id,
                ChapterUnlock.chapter_number == chapter_number,
            )
        )
        return result.scalar_one_or_none() is not None
    except SQLAlchemyError as e:
        logger.error(f"[entitlement] unlock lookup failed (reader={reader_id}, novel={novel_id}, ch={chapter_number}): {e}")
        return False


async def is_accessible(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_ref: Union[str, uuid.UUID],
    chapter_number: int,
    now: Optional[datetime] = None,
) -> bool:
    chapter_number = parse_chapter_ref(chapter_number)
    if chapter_number is None:
        return False
    novel = await resolve_novel(db, novel_ref)
    if novel is None:
        return False
    chapter = await get_chapter_by_number(db, novel.id, chapter_number)
    if chapter is None:
        return False
    now = now or utcnow()
    if is_published(chapter, now):
        return True
    return await has_unlock(db, reader_id, novel.id, chapter_number)


def filter_accessible(chapters: List[Chapter], unlocked: Set[int], now: datetime) -> List[Chapter]:
    return [
        ch for ch in chapters
        if is_chapter_accessible(ch, now, ch.chapter_number in unlocked)
    ]


async def list_accessible(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_ref: Union[str, uuid.UUID],
    now: Optional[datetime] = None,
) -> List[Chapter]:
    """열람 가능한 회차 목록 (회차 번호 오름차순)"""
    novel = await resolve_novel(db, novel_ref)
    if novel is None:
        return []
    chapters = await get_chapters(db, novel.id)
    unlocked = await get_unlocked_chapter_numbers(db, reader_id, novel.id)
    return filter_accessible(chapters, unlocked, now or utcnow())


def _list_item_fields(chapter: Chapter, now: datetime, unlocked: bool) -> dict:
    published = is_published(chapter, now)
    return {
        "id": chapter.id,
        "novel_id": chapter.novel_id,
        "chapter_number": chapter.chapter_number,
        "title": chapter.title,
        "publish_at": chapter.publish_at,
        "coins": chapter.coins,
        "slug": generate_chapter_slug(chapter.chapter_number, chapter.title),
        "price": chapter_price(chapter),
        "is_published": published,
        "is_unlocked": unlocked,
        "is_locked": not published and not unlocked,
    }


async def list_chapters(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_ref: Union[str, uuid.UUID],
    now: Optional[datetime] = None,
) -> Optional[List[ChapterListItem]]:
    """전체 회차 목록 + 독자 기준 잠금 상태. 소설이 없으면 None"""
    novel = await resolve_novel(db, novel_ref)
    if novel is None:
        return None
    now = now or utcnow()
    chapters = await get_chapters(db, novel.id)
    unlocked = await get_unlocked_chapter_numbers(db, reader_id, novel.id)
    return [
        ChapterListItem(**_list_item_fields(ch, now, ch.chapter_number in unlocked))
        for ch in chapters
    ]


async def get_chapter(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_ref: Union[str, uuid.UUID],
    chapter_ref: Union[str, int],
    now: Optional[datetime] = None,
) -> Optional[ChapterDetailResponse]:
    """단일 회차 조회. 잠긴 회차는 본문 없이 반환"""
    chapter_number = parse_chapter_ref(chapter_ref)
    if chapter_number is None:
        logger.debug(f"[entitlement] invalid chapter ref: {chapter_ref!r}")
        return None
    novel = await resolve_novel(db, novel_ref)
    if novel is None:
        return None
    chapter = await get_chapter_by_number(db, novel.id, chapter_number)
    if chapter is None:
        return None

    now = now or utcnow()
    unlocked = await has_unlock(db, reader_id, novel.id, chapter_number)
    fields = _list_item_fields(chapter, now, unlocked)
    return ChapterDetailResponse(
        **fields,
        content=None if fields["is_locked"] else chapter.content,
        novel=NovelResponse.model_validate(novel),
    )
