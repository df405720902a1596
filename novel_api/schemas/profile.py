"""
프로필 관련 스키마
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
import uuid


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    avatar_url: Optional[str] = None
    discord_id: Optional[str] = None
    role: str
    coins: int
    current_streak: int = 0
    last_visit: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CoinGrantRequest(BaseModel):
    amount: int = Field(..., gt=0, le=10000, description="지급 코인")


class CoinBalanceResponse(BaseModel):
    profile_id: uuid.UUID
    coins: int
