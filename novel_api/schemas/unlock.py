"""
회차 잠금 해제 관련 스키마
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
import uuid


class UnlockRequest(BaseModel):
    # 클라이언트 재시도 시 동일 키를 보내면 영수증 ID로 사용됨
    idempotency_key: Optional[uuid.UUID] = Field(None, description="요청 멱등 키")


class ChapterUnlockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    profile_id: uuid.UUID
    novel_id: uuid.UUID
    chapter_number: int
    cost: int
    created_at: Optional[datetime] = None


class UnlockResponse(BaseModel):
    success: bool
    charged: bool
    cost: int
    author_share: int
    balance_after: Optional[int] = None
    unlock: Optional[ChapterUnlockResponse] = None
    states: List[str]
    message: str
