"""
회차 잠금 해제 API
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.core.database import get_db, get_redis
from novel_api.core.security import get_current_profile
from novel_api.models.profile import Profile
from novel_api.schemas.unlock import ChapterUnlockResponse, UnlockRequest, UnlockResponse
from novel_api.services.unlock_service import (
    INSUFFICIENT_COINS_MESSAGE,
    UNLOCK_FAILED_MESSAGE,
    ChapterUnlockService,
    InsufficientCoins,
    InvalidUnlockRequest,
    UnlockError,
    UnlockFailureReason,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{novel_ref}/chapters/{chapter_ref}/unlock", response_model=UnlockResponse)
async def unlock_chapter(
    novel_ref: str,
    chapter_ref: str,
    request: Optional[UnlockRequest] = None,
    db: AsyncSession = Depends(get_db),
    redis: Optional[Redis] = Depends(get_redis),
    current_profile: Profile = Depends(get_current_profile),
):
    """
    코인으로 회차 잠금 해제

    이미 잠금 해제한 회차는 추가 차감 없이 성공으로 응답한다.
    """
    reader_id = current_profile.id
    service = ChapterUnlockService(db, redis)
    try:
        result = await service.unlock(
            reader_id,
            novel_ref,
            chapter_ref,
            idempotency_key=request.idempotency_key if request else None,
        )
    except InsufficientCoins:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=INSUFFICIENT_COINS_MESSAGE)
    except InvalidUnlockRequest as e:
        logger.info(f"[unlock] rejected request from {reader_id}: {e}")
        if e.not_found:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=UNLOCK_FAILED_MESSAGE)
    except UnlockError as e:
        logger.warning(f"[unlock] failed for {reader_id} ({e.reason.value}); states={e.states}")
        code = (
            status.HTTP_409_CONFLICT
            if e.reason == UnlockFailureReason.UNLOCK_IN_PROGRESS
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        raise HTTPException(status_code=code, detail=UNLOCK_FAILED_MESSAGE)

    return UnlockResponse(
        success=True,
        charged=result.charged,
        cost=result.cost,
        author_share=result.author_share,
        balance_after=result.balance_after,
        unlock=ChapterUnlockResponse.model_validate(result.unlock) if result.unlock else None,
        states=result.states,
        message=result.message,
    )
