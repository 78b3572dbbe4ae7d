# 프로필/점수 API 스키마

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProfileCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    push_token: Optional[str] = Field(default=None, max_length=200)


class PushTokenBody(BaseModel):
    push_token: Optional[str] = Field(default=None, max_length=200)


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    commitment_score: int
    total_attended: int
    total_flaked: int
    push_token: Optional[str] = None


class LedgerEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    plan_id: Optional[int] = None
    outcome: str
    change: int
    previous_score: int
    new_score: int
    created_at: Optional[datetime] = None


class HistoryItemOut(BaseModel):
    plan_id: int
    title: Optional[str] = None
    plan_status: str
    planned_date: datetime
    vote: Optional[str] = None
    status: str
    checked_in: bool


class BonusOut(BaseModel):
    bonus: int
    commitment_score: int
