"""
인증 관련 스키마
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
import uuid


class AuthIdentity(BaseModel):
    """인증 제공자가 보증하는 사용자 식별 정보"""
    id: uuid.UUID
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
