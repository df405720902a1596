"""
회차 잠금 해제 모델 — 코인으로 조기 열람한 회차의 영구 소유 기록
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
import uuid

from novel_api.core.database import Base, UUID


class ChapterUnlock(Base):
    __tablename__ = "chapter_unlocks"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    profile_id = Column(UUID(), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    novel_id = Column(UUID(), ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_number = Column(Integer, nullable=False)
    cost = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("profile_id", "novel_id", "chapter_number", name="uq_profile_novel_chapter"),
    )

    profile = relationship("Profile", back_populates="chapter_unlocks")

    def __repr__(self):
        return f"<ChapterUnlock(profile={self.profile_id}, novel={self.novel_id}, ch={self.chapter_number})>"
