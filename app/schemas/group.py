# 그룹/리더보드 API 스키마

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    created_by: int


class MemberAdd(BaseModel):
    user_id: int
    role: Literal["admin", "member"] = "member"


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_by: Optional[int] = None


class MemberStatsOut(BaseModel):
    """plans_flaked(원장: 노쇼/늦은 취소)와 plans_declined(no 투표)는 서로 다른 지표."""

    user_id: int
    name: str
    role: str
    commitment_score: int
    plans_attended: int
    plans_flaked: int
    plans_declined: int


class StatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    plans_attended: int
    plans_flaked: int
    attendance_rate: int


class LeaderboardEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rank: int
    user_id: int
    name: str
    score: int
    stats: StatsOut
    marker: Optional[Literal["gold", "silver", "bronze"]] = None
