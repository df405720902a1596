"""
프로필/코인 API
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.core.config import settings
from novel_api.core.database import get_db
from novel_api.core.security import get_current_profile
from novel_api.models.profile import Profile
from novel_api.schemas.profile import CoinBalanceResponse, CoinGrantRequest, ProfileResponse
from novel_api.services.profile_service import grant_coins

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(current_profile: Profile = Depends(get_current_profile)):
    return current_profile


@router.post("/me/coins/demo", response_model=CoinBalanceResponse)
async def add_demo_coins(
    request: CoinGrantRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """데모 코인 지급 (TEST_MODE 전용)"""
    if not settings.TEST_MODE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Demo coins only available in TEST_MODE")
    profile_id = current_profile.id
    balance = await grant_coins(db, profile_id, request.amount)
    return CoinBalanceResponse(profile_id=profile_id, coins=balance)
