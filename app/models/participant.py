# PlanParticipant 모델: 약속 × 사용자 (투표/출석 상태)

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from app.models.base import Base


class Vote(str, PyEnum):
    YES = "yes"
    MAYBE = "maybe"
    NO = "no"


class ParticipantStatus(str, PyEnum):
    """투표에서 파생되는 참여 상태."""

    CONFIRMED = "confirmed"
    DECLINED = "declined"
    MAYBE = "maybe"
    PENDING = "pending"


# vote → status 고정 매핑 (미투표는 PENDING)
VOTE_TO_STATUS: dict[str, str] = {
    Vote.YES.value: ParticipantStatus.CONFIRMED.value,
    Vote.NO.value: ParticipantStatus.DECLINED.value,
    Vote.MAYBE.value: ParticipantStatus.MAYBE.value,
}


def derive_status(vote: Optional[str]) -> str:
    if vote is None:
        return ParticipantStatus.PENDING.value
    return VOTE_TO_STATUS[vote]


class PlanParticipant(Base):
    """참여자 테이블. 약속 생성 시점의 그룹 멤버로 한 번만 채워짐 (이후 명단 변경 미반영)."""

    __tablename__ = "plan_participants"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    vote = Column(String(10), nullable=True)
    status = Column(String(20), nullable=False, default=ParticipantStatus.PENDING.value)
    checked_in = Column(Boolean, nullable=False, default=False)
    voted_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("plan_id", "user_id", name="uq_participant_plan_user"),)
