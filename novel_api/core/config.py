"""
애플리케이션 설정
"""

from pydantic_settings import BaseSettings
from pathlib import Path
from dotenv import load_dotenv


"""env 로딩 우선순위
1) OS 환경변수
2) 프로젝트 루트의 .env
"""

_here = Path(__file__).resolve()
_repo_root_env = _here.parents[2] / ".env"
try:
    if _repo_root_env.exists():
        load_dotenv(dotenv_path=str(_repo_root_env), override=False)
except Exception:
    pass


class Settings(BaseSettings):
    """애플리케이션 설정"""
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    # 데모 코인 지급 등 개발용 엔드포인트 허용
    TEST_MODE: bool = False

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/novels.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # 외부 인증 제공자(Discord OAuth 브로커)가 발급한 액세스 토큰 검증용
    AUTH_JWT_SECRET: str = "your-super-secret-jwt-key-change-this-in-production"
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str | None = "authenticated"
    AUTH_JWT_EXPIRE_MINUTES: int = 60

    # 회차 잠금 해제 가격/수익 배분
    DEFAULT_CHAPTER_UNLOCK_COST: int = 5
    REVENUE_SHARE_ENABLED: bool = True
    AUTHOR_SHARE_NUMERATOR: int = 4
    AUTHOR_SHARE_DENOMINATOR: int = 5
    UNLOCK_LOCK_TTL_SECONDS: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()


# 환경별 설정 검증
def validate_settings():
    """설정 검증"""
    if settings.ENVIRONMENT == "production":
        if settings.AUTH_JWT_SECRET == "your-super-secret-jwt-key-change-this-in-production":
            raise ValueError("프로덕션 환경에서는 AUTH_JWT_SECRET을 변경해야 합니다.")

    if settings.DEFAULT_CHAPTER_UNLOCK_COST <= 0:
        raise ValueError("DEFAULT_CHAPTER_UNLOCK_COST는 0보다 커야 합니다.")
    if settings.AUTHOR_SHARE_DENOMINATOR <= 0:
        raise ValueError("AUTHOR_SHARE_DENOMINATOR는 0보다 커야 합니다.")
    if not 0 <= settings.AUTHOR_SHARE_NUMERATOR <= settings.AUTHOR_SHARE_DENOMINATOR:
        raise ValueError("작가 배분 비율은 0 이상 1 이하여야 합니다.")

    return True


# 설정 검증 실행
validate_settings()
