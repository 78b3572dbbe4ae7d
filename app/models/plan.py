# Plan 모델: 그룹이 특정 이벤트에 함께 가자고 제안한 약속

from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.models.base import Base


class PlanStatus(str, PyEnum):
    """약속 상태. PROPOSED → CONFIRMED → COMPLETED, 또는 CANCELLED(종료)."""

    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# DB에는 String(20)으로 저장. 앱에서는 PlanStatus로 비교.
STATUS_DEFAULT = PlanStatus.PROPOSED.value

MIN_ATTENDEES_LOW = 2
MIN_ATTENDEES_HIGH = 6


class Plan(Base):
    """약속 테이블. event_id는 외부 이벤트 카탈로그의 식별자 (FK 아님)."""

    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(100), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=True)  # 표시용 (이벤트 제목 캐시)
    description = Column(Text, nullable=True)
    # 상태 변경은 services.plan_status.transition_plan 만 수행
    status = Column(String(20), nullable=False, default=STATUS_DEFAULT, server_default=STATUS_DEFAULT)
    planned_date = Column(DateTime(timezone=True), nullable=False)
    min_attendees = Column(Integer, nullable=False, default=3)  # 생성 후 변경 불가
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
