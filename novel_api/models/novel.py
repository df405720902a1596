"""
소설 모델
"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
import uuid

from novel_api.core.database import Base, UUID


class Novel(Base):
    """소설 모델"""
    __tablename__ = "novels"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    slug = Column(String(200), unique=True, index=True, nullable=False)
    title = Column(String(200), nullable=False)
    author = Column(String(100), nullable=False)  # 표시용 작가명
    description = Column(Text)
    # 회차 판매 수익 배분 대상 프로필
    author_profile_id = Column(UUID(), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    author_profile = relationship("Profile", back_populates="novels")
    chapters = relationship(
        "Chapter",
        back_populates="novel",
        cascade="all, delete-orphan",
        order_by="Chapter.chapter_number",
    )

    def __repr__(self):
        return f"<Novel(id={self.id}, slug={self.slug})>"
