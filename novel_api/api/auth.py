"""
인증 관련 API 라우터

OAuth 교환은 외부 인증 제공자가 처리하고, 여기서는 발급된 토큰으로
로그인을 마무리(프로필 생성/방문 기록)한다.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.core.database import get_db
from novel_api.core.security import get_current_identity
from novel_api.schemas.auth import AuthIdentity
from novel_api.schemas.profile import ProfileResponse
from novel_api.services.profile_service import ensure_profile, touch_last_visit

router = APIRouter()


@router.post("/session", response_model=ProfileResponse)
async def complete_sign_in(
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """로그인 완료: 프로필이 없으면 생성하고 마지막 방문 시각 갱신"""
    profile = await ensure_profile(db, identity)
    return await touch_last_visit(db, profile.id)
