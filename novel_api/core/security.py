"""
보안 관련 유틸리티

액세스 토큰은 외부 인증 제공자(Discord OAuth 브로커)가 서명해 발급한다.
여기서는 서명/만료/audience만 검증하고 `sub`를 사용자 식별자로 사용한다.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid

from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.core.config import settings
from novel_api.core.database import get_db
from novel_api.models.profile import Profile
from novel_api.schemas.auth import AuthIdentity


SIGN_IN_REQUIRED_MESSAGE = "Please sign in to unlock chapters"

# 토큰이 없어도 익명 열람이 가능해야 하므로 auto_error=False
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """액세스 토큰 생성 (개발/테스트용, 운영에서는 인증 제공자가 발급)"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.AUTH_JWT_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    if settings.AUTH_JWT_AUDIENCE and "aud" not in to_encode:
        to_encode["aud"] = settings.AUTH_JWT_AUDIENCE
    return jwt.encode(to_encode, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """토큰 검증"""
    options = {} if settings.AUTH_JWT_AUDIENCE else {"verify_aud": False}
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except JWTError:
        return None


def identity_from_token(token: str) -> Optional[AuthIdentity]:
    payload = verify_token(token)
    if payload is None:
        return None
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None
    return AuthIdentity(
        id=user_id,
        email=payload.get("email"),
        user_metadata=payload.get("user_metadata") or {},
    )


async def get_current_identity_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthIdentity]:
    """
    현재 인증된 사용자 식별자. 토큰이 없거나 유효하지 않으면 None (익명 열람).
    """
    if credentials is None:
        return None
    return identity_from_token(credentials.credentials)


async def get_current_identity(
    identity: Optional[AuthIdentity] = Depends(get_current_identity_optional),
) -> AuthIdentity:
    """현재 인증된 사용자 식별자 (필수)"""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=SIGN_IN_REQUIRED_MESSAGE,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def get_current_profile(
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """현재 사용자 프로필. 최초 로그인이면 프로필을 생성한다."""
    from novel_api.services.profile_service import ensure_profile
    return await ensure_profile(db, identity)
