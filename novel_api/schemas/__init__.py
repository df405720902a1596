"""
Pydantic 스키마 패키지
"""

from .auth import AuthIdentity
from .profile import ProfileResponse, CoinGrantRequest, CoinBalanceResponse
from .novel import (
    NovelResponse,
    ChapterSummary,
    ChapterListItem,
    ChapterDetailResponse,
    ChapterNavigationResponse,
    ChapterCountResponse,
    ChapterAccessResponse,
    AccessibleChapterList,
)
from .unlock import UnlockRequest, ChapterUnlockResponse, UnlockResponse

__all__ = [
    "AuthIdentity",
    "ProfileResponse",
    "CoinGrantRequest",
    "CoinBalanceResponse",
    "NovelResponse",
    "ChapterSummary",
    "ChapterListItem",
    "ChapterDetailResponse",
    "ChapterNavigationResponse",
    "ChapterCountResponse",
    "ChapterAccessResponse",
    "AccessibleChapterList",
    "UnlockRequest",
    "ChapterUnlockResponse",
    "UnlockResponse",
]
