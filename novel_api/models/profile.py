"""
프로필 모델 — 인증 제공자 사용자 1명당 1개, 코인 잔액 보유
"""

import enum

from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship

from novel_api.core.database import Base, UUID


class ProfileRole(str, enum.Enum):
    USER = "USER"
    AUTHOR = "AUTHOR"
    TRANSLATOR = "TRANSLATOR"
    ADMIN = "ADMIN"


# 수익 배분을 받을 수 있는 역할
BENEFICIARY_ROLES = (ProfileRole.AUTHOR.value, ProfileRole.TRANSLATOR.value)


class Profile(Base):
    """사용자 프로필 모델"""
    __tablename__ = "profiles"

    # 인증 제공자의 사용자 ID를 그대로 사용
    id = Column(UUID(), primary_key=True, index=True)
    username = Column(String(100), nullable=False)
    avatar_url = Column(String(500))
    discord_id = Column(String(50), index=True)
    role = Column(String(20), nullable=False, default=ProfileRole.USER.value)
    coins = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    last_visit = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('coins >= 0', name='coins_non_negative'),
    )

    novels = relationship("Novel", back_populates="author_profile")
    chapter_unlocks = relationship("ChapterUnlock", back_populates="profile", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Profile(id={self.id}, username={self.username}, coins={self.coins})>"
