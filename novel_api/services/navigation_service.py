"""
회차 내비게이션 서비스 — 이전/다음 회차, 열람 가능 회차 수
"""

from bisect import bisect_left, bisect_right
from datetime import datetime
from typing import Dict, List, Optional, Union
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.models.chapter import Chapter
from novel_api.services.entitlement_service import list_accessible


def find_neighbors(accessible: List[Chapter], current_number: int) -> Dict[str, Optional[Chapter]]:
    """열람 가능 회차 중 현재 회차의 바로 앞/뒤 회차

    잠긴 회차는 건너뛴다. 현재 회차가 목록에 없으면(잠긴 회차를 보고 있는 경우)
    "이전 없음 + 첫 회차"로 되돌리지 않고 번호 기준으로 가장 가까운 앞/뒤
    회차를 돌려준다. 목록 위치 기반 내비게이션과 의도적으로 다른 동작이다.
    """
    numbers = [ch.chapter_number for ch in accessible]
    lo = bisect_left(numbers, current_number)
    hi = bisect_right(numbers, current_number)
    return {
        "prev_chapter": accessible[lo - 1] if lo > 0 else None,
        "next_chapter": accessible[hi] if hi < len(accessible) else None,
    }


async def get_chapter_navigation(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_ref: Union[str, uuid.UUID],
    current_chapter_number: int,
    now: Optional[datetime] = None,
) -> Dict[str, Optional[Chapter]]:
    accessible = await list_accessible(db, reader_id, novel_ref, now=now)
    if not accessible:
        return {"prev_chapter": None, "next_chapter": None}
    return find_neighbors(accessible, current_chapter_number)


async def get_total_chapters(
    db: AsyncSession,
    reader_id: Optional[uuid.UUID],
    novel_ref: Union[str, uuid.UUID],
    now: Optional[datetime] = None,
) -> int:
    """열람 가능한 회차 수"""
    return len(await list_accessible(db, reader_id, novel_ref, now=now))
