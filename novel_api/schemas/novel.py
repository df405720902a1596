"""
소설/회차 관련 스키마
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict
import uuid


class NovelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slug: str
    title: str
    author: str
    description: Optional[str] = None
    author_profile_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None


class ChapterSummary(BaseModel):
    """목록/내비게이션용 회차 요약"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    novel_id: uuid.UUID
    chapter_number: int
    title: Optional[str] = None
    publish_at: Optional[datetime] = None
    coins: Optional[int] = None


class ChapterListItem(ChapterSummary):
    slug: str
    price: int
    is_published: bool
    is_unlocked: bool
    is_locked: bool


class ChapterDetailResponse(ChapterListItem):
    # 잠긴 회차는 본문을 내려주지 않음
    content: Optional[str] = None
    novel: NovelResponse


class ChapterNavigationResponse(BaseModel):
    prev_chapter: Optional[ChapterSummary] = None
    next_chapter: Optional[ChapterSummary] = None


class ChapterCountResponse(BaseModel):
    total: int


class ChapterAccessResponse(BaseModel):
    novel_ref: str
    chapter_number: int
    accessible: bool


class AccessibleChapterList(BaseModel):
    chapters: List[ChapterSummary]
