"""
소설/회차 조회 API
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from novel_api.core.database import get_db
from novel_api.core.security import get_current_identity_optional
from novel_api.models.novel import Novel
from novel_api.schemas.auth import AuthIdentity
from novel_api.schemas.novel import (
    AccessibleChapterList,
    ChapterAccessResponse,
    ChapterCountResponse,
    ChapterDetailResponse,
    ChapterListItem,
    ChapterNavigationResponse,
    ChapterSummary,
    NovelResponse,
)
from novel_api.services.entitlement_service import (
    get_chapter,
    is_accessible,
    list_accessible,
    list_chapters,
    parse_chapter_ref,
    resolve_novel,
)
from novel_api.services.navigation_service import get_chapter_navigation, get_total_chapters

router = APIRouter()


def _reader_id(identity: Optional[AuthIdentity]):
    return identity.id if identity else None


def _chapter_number_or_400(chapter_ref: str) -> int:
    chapter_number = parse_chapter_ref(chapter_ref)
    if chapter_number is None:
        raise HTTPException(status_code=400, detail="Invalid chapter number format")
    return chapter_number


@router.get("/", response_model=List[NovelResponse])
async def list_novels(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """소설 목록 (최신순)"""
    result = await db.execute(
        select(Novel).order_by(Novel.created_at.desc()).offset(skip).limit(limit)
    )
    return result.scalars().all()


@router.get("/{novel_ref}", response_model=NovelResponse)
async def get_novel(novel_ref: str, db: AsyncSession = Depends(get_db)):
    novel = await resolve_novel(db, novel_ref)
    if not novel:
        raise HTTPException(status_code=404, detail="Novel not found")
    return novel


@router.get("/{novel_ref}/chapters", response_model=List[ChapterListItem])
async def get_novel_chapters(
    novel_ref: str,
    db: AsyncSession = Depends(get_db),
    identity: Optional[AuthIdentity] = Depends(get_current_identity_optional),
):
    """전체 회차 목록 + 잠금 상태/가격"""
    chapters = await list_chapters(db, _reader_id(identity), novel_ref)
    if chapters is None:
        raise HTTPException(status_code=404, detail="Novel not found")
    return chapters


@router.get("/{novel_ref}/chapters/accessible", response_model=AccessibleChapterList)
async def get_accessible_chapters(
    novel_ref: str,
    db: AsyncSession = Depends(get_db),
    identity: Optional[AuthIdentity] = Depends(get_current_identity_optional),
):
    chapters = await list_accessible(db, _reader_id(identity), novel_ref)
    return AccessibleChapterList(chapters=[ChapterSummary.model_validate(ch) for ch in chapters])


@router.get("/{novel_ref}/chapters/count", response_model=ChapterCountResponse)
async def get_chapter_count(
    novel_ref: str,
    db: AsyncSession = Depends(get_db),
    identity: Optional[AuthIdentity] = Depends(get_current_identity_optional),
):
    """열람 가능한 회차 수 (소설이 없으면 0)"""
    total = await get_total_chapters(db, _reader_id(identity), novel_ref)
    return ChapterCountResponse(total=total)


@router.get("/{novel_ref}/chapters/{chapter_ref}", response_model=ChapterDetailResponse)
async def get_novel_chapter(
    novel_ref: str,
    chapter_ref: str,
    db: AsyncSession = Depends(get_db),
    identity: Optional[AuthIdentity] = Depends(get_current_identity_optional),
):
    _chapter_number_or_400(chapter_ref)
    chapter = await get_chapter(db, _reader_id(identity), novel_ref, chapter_ref)
    if chapter is None:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter


@router.get("/{novel_ref}/chapters/{chapter_ref}/navigation", response_model=ChapterNavigationResponse)
async def get_navigation(
    novel_ref: str,
    chapter_ref: str,
    db: AsyncSession = Depends(get_db),
    identity: Optional[AuthIdentity] = Depends(get_current_identity_optional),
):
    """이전/다음 열람 가능 회차 (잠긴 회차는 건너뜀)"""
    chapter_number = _chapter_number_or_400(chapter_ref)
    nav = await get_chapter_navigation(db, _reader_id(identity), novel_ref, chapter_number)
    return ChapterNavigationResponse(
        prev_chapter=ChapterSummary.model_validate(nav["prev_chapter"]) if nav["prev_chapter"] else None,
        next_chapter=ChapterSummary.model_validate(nav["next_chapter"]) if nav["next_chapter"] else None,
    )


@router.get("/{novel_ref}/chapters/{chapter_ref}/access", response_model=ChapterAccessResponse)
async def get_access(
    novel_ref: str,
    chapter_ref: str,
    db: AsyncSession = Depends(get_db),
    identity: Optional[AuthIdentity] = Depends(get_current_identity_optional),
):
    chapter_number = _chapter_number_or_400(chapter_ref)
    accessible = await is_accessible(db, _reader_id(identity), novel_ref, chapter_number)
    return ChapterAccessResponse(novel_ref=novel_ref, chapter_number=chapter_number, accessible=accessible)
