"""
모델 패키지
"""

from .profile import Profile, ProfileRole, BENEFICIARY_ROLES
from .novel import Novel
from .chapter import Chapter
from .chapter_unlock import ChapterUnlock

__all__ = [
    "Profile",
    "ProfileRole",
    "BENEFICIARY_ROLES",
    "Novel",
    "Chapter",
    "ChapterUnlock",
]
