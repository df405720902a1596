"""
웹소설 플랫폼 - FastAPI 메인 애플리케이션
"""

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api import __version__
from novel_api.core.config import settings
from novel_api.core.database import (
    Base,
    check_db_connection,
    check_redis_connection,
    engine,
    get_db,
    get_redis,
)

# 모델 등록 (create_all 대상)
import novel_api.models  # noqa: F401

from novel_api.api.auth import router as auth_router
from novel_api.api.novels import router as novels_router
from novel_api.api.unlocks import router as unlocks_router
from novel_api.api.profiles import router as profiles_router

# 로깅 설정
logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 시작/종료 시 실행되는 이벤트"""
    logger.info("🚀 웹소설 플랫폼 API 시작")

    # 데이터베이스 테이블 생성 (개발용)
    if settings.ENVIRONMENT == "development":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("📊 데이터베이스 테이블 생성 완료")

    yield

    await engine.dispose()
    logger.info("👋 웹소설 플랫폼 API 종료")


app = FastAPI(
    title="Novel Platform API",
    description="웹소설 열람 및 코인 회차 잠금 해제",
    version=__version__,
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan,
)

DEV_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=DEV_ALLOWED_ORIGINS if settings.ENVIRONMENT == "development" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/auth", tags=["인증"])
app.include_router(profiles_router, prefix="/profiles", tags=["프로필"])
app.include_router(novels_router, prefix="/novels", tags=["소설"])
app.include_router(unlocks_router, prefix="/novels", tags=["회차 잠금 해제"])


@app.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "message": "Novel Platform API",
        "version": __version__,
        "docs": "/docs",
        "status": "running",
    }


@app.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    redis: Optional[Redis] = Depends(get_redis),
):
    """헬스 체크 엔드포인트

    Redis는 잠금 해제 중복 방지에만 쓰이고 장애 시 우회되므로 상태 판정에서 제외
    """
    db_ok = await check_db_connection(db)
    redis_ok = await check_redis_connection(redis)
    return {
        "status": "healthy" if db_ok else "degraded",
        "environment": settings.ENVIRONMENT,
        "database": "connected" if db_ok else "unavailable",
        "redis": "connected" if redis_ok else "unavailable",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "novel_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
    )
