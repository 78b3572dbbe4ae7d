# 약속 API 요청/응답 스키마

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.plan import MIN_ATTENDEES_HIGH, MIN_ATTENDEES_LOW

PlanStatusLiteral = Literal["proposed", "confirmed", "completed", "cancelled"]
VoteLiteral = Literal["yes", "maybe", "no"]
ParticipantStatusLiteral = Literal["confirmed", "declined", "maybe", "pending"]


class PlanCreate(BaseModel):
    """약속 생성 요청. 참여자는 현재 그룹 명단으로 자동 시드."""

    event_id: str = Field(..., min_length=1, max_length=100)
    group_id: int
    creator_id: int
    min_attendees: int = Field(default=3, ge=MIN_ATTENDEES_LOW, le=MIN_ATTENDEES_HIGH)
    planned_date: datetime
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None


class VoteBody(BaseModel):
    """투표 값은 서비스에서 검증 (허용 외 값은 400)."""

    user_id: int
    vote: str


class UserBody(BaseModel):
    user_id: int


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    vote: Optional[VoteLiteral] = None
    status: ParticipantStatusLiteral
    checked_in: bool
    voted_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str
    group_id: int
    created_by: int
    title: Optional[str] = None
    description: Optional[str] = None
    status: PlanStatusLiteral
    planned_date: datetime
    min_attendees: int
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class VoteCounts(BaseModel):
    yes: int = 0
    maybe: int = 0
    no: int = 0
    pending: int = 0


class PlanDetailOut(BaseModel):
    """GET /plans/{id}, POST /plans 응답."""

    plan: PlanOut
    participants: List[ParticipantOut]
    counts: VoteCounts


class VoteOut(PlanDetailOut):
    auto_confirmed: bool


class CheckInOut(BaseModel):
    checked_in: bool
    already_checked_in: bool


class CompletionOut(BaseModel):
    total_attended: int
    total_no_shows: int


class ReminderOut(BaseModel):
    """리마인더는 응답 전 발송 대상만 계산, 실제 발송은 백그라운드."""

    kind: str
    recipients: int


def counts_out(counts: Dict[str, int]) -> VoteCounts:
    return VoteCounts(**counts)
