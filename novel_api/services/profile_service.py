"""
프로필 관련 서비스
"""

from datetime import datetime, timezone
from typing import Optional, Union
import logging
import random
import string
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.models.profile import Profile, ProfileRole
from novel_api.schemas.auth import AuthIdentity

logger = logging.getLogger(__name__)


async def get_profile_by_id(db: AsyncSession, profile_id: Union[str, uuid.UUID]) -> Optional[Profile]:
    """ID로 프로필 조회"""
    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    return result.scalar_one_or_none()


async def get_coin_balance(db: AsyncSession, profile_id: Union[str, uuid.UUID]) -> Optional[int]:
    """DB의 현재 코인 잔액 (세션 캐시를 거치지 않음)"""
    result = await db.execute(select(Profile.coins).where(Profile.id == profile_id))
    return result.scalar_one_or_none()


def _username_from_metadata(metadata: dict) -> str:
    for key in ("preferred_username", "full_name", "name"):
        value = metadata.get(key)
        if value:
            return str(value)[:100]
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"User{suffix}"


async def ensure_profile(db: AsyncSession, identity: AuthIdentity) -> Profile:
    """프로필 조회, 없으면 최초 로그인으로 보고 생성"""
    profile = await get_profile_by_id(db, identity.id)
    if profile is not None:
        return profile

    metadata = identity.user_metadata or {}
    provider_id = metadata.get("provider_id")
    profile = Profile(
        id=identity.id,
        username=_username_from_metadata(metadata),
        avatar_url=metadata.get("avatar_url"),
        discord_id=str(provider_id) if provider_id is not None else None,
        role=ProfileRole.USER.value,
        coins=0,
        current_streak=0,
        last_visit=datetime.now(timezone.utc),
    )
    db.add(profile)
    try:
        await db.commit()
    except IntegrityError:
        # 동시 로그인으로 다른 요청이 먼저 생성한 경우
        await db.rollback()
        existing = await get_profile_by_id(db, identity.id)
        if existing is None:
            raise
        return existing
    await db.refresh(profile)
    logger.info(f"[profile] provisioned profile {profile.id} ({profile.username})")
    return profile


async def touch_last_visit(db: AsyncSession, profile_id: uuid.UUID) -> Optional[Profile]:
    """로그인 완료 시 마지막 방문 시각 갱신"""
    await db.execute(
        update(Profile)
        .where(Profile.id == profile_id)
        .values(last_visit=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    result = await db.execute(
        select(Profile).where(Profile.id == profile_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def grant_coins(db: AsyncSession, profile_id: uuid.UUID, amount: int) -> int:
    """코인 지급 (구매/보너스). 지급 후 잔액 반환"""
    if amount <= 0:
        raise ValueError("지급 코인은 0보다 커야 합니다")

    result = await db.execute(
        update(Profile)
        .where(Profile.id == profile_id)
        .values(coins=Profile.coins + amount, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise LookupError(f"profile {profile_id} not found")
    await db.commit()
    balance = await get_coin_balance(db, profile_id)
    logger.info(f"[profile] granted {amount} coins to {profile_id}, balance={balance}")
    return balance
