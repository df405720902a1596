"""
소설 회차 모델
"""

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
import uuid

from novel_api.core.database import Base, UUID


class Chapter(Base):
    __tablename__ = "chapters"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    novel_id = Column(UUID(), ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_number = Column(Integer, nullable=False)  # 1부터 시작하는 회차 번호
    title = Column(String(200), nullable=True)
    content = Column(Text, nullable=False, default="")
    # NULL이거나 과거면 무료 공개
    publish_at = Column(DateTime(timezone=True), nullable=True)
    # 조기 열람 가격. NULL/0이면 기본 가격 사용
    coins = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('novel_id', 'chapter_number', name='uq_novel_chapter_number'),
    )

    novel = relationship("Novel", back_populates="chapters")

    def __repr__(self):
        return f"<Chapter(novel_id={self.novel_id}, no={self.chapter_number})>"
