# 약속 생성/조회 CRUD

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.crud.group_crud import get_group, get_roster
from app.errors import NotFoundError, ValidationError
from app.models.participant import ParticipantStatus, PlanParticipant
from app.models.plan import MIN_ATTENDEES_HIGH, MIN_ATTENDEES_LOW, Plan, PlanStatus
from app.models.profile import Profile


def create_plan(
    db: Session,
    event_id: str,
    group_id: int,
    creator_id: int,
    min_attendees: int,
    planned_date: datetime,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Plan:
    """
    약속 생성 + 현재 그룹 명단으로 참여자(pending, 미투표) 시드.

    - 이후 명단이 바뀌어도 참여자는 바뀌지 않음.
    - 생성자도 명단에 있으면 참여자로 들어감 (자동 yes 아님).

    ⚠️ 이 함수는 commit/rollback 하지 않음. 호출자(라우터)가 트랜잭션을 제어.
    """
    if not MIN_ATTENDEES_LOW <= min_attendees <= MIN_ATTENDEES_HIGH:
        raise ValidationError(
            f"min_attendees must be between {MIN_ATTENDEES_LOW} and {MIN_ATTENDEES_HIGH}"
        )
    get_group(db, group_id)
    if db.query(Profile).filter(Profile.id == creator_id).first() is None:
        raise NotFoundError("Profile not found")

    plan = Plan(
        event_id=event_id,
        group_id=group_id,
        created_by=creator_id,
        title=title,
        description=description,
        planned_date=planned_date,
        min_attendees=min_attendees,
        status=PlanStatus.PROPOSED.value,
    )
    db.add(plan)
    db.flush()

    for user_id in get_roster(db, group_id):
        db.add(
            PlanParticipant(
                plan_id=plan.id,
                user_id=user_id,
                vote=None,
                status=ParticipantStatus.PENDING.value,
                checked_in=False,
            )
        )
    db.flush()
    return plan


def get_plan(db: Session, plan_id: int) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if plan is None:
        raise NotFoundError("Plan not found")
    return plan


def get_plan_for_update(db: Session, plan_id: int) -> Plan:
    """FOR UPDATE로 plan 행 잠금 (같은 약속에 대한 투표를 직렬화)."""
    plan = db.query(Plan).filter(Plan.id == plan_id).with_for_update().first()
    if plan is None:
        raise NotFoundError("Plan not found")
    return plan


def get_participants(db: Session, plan_id: int, status: Optional[str] = None) -> List[PlanParticipant]:
    q = db.query(PlanParticipant).filter(PlanParticipant.plan_id == plan_id)
    if status is not None:
        q = q.filter(PlanParticipant.status == status)
    return q.order_by(PlanParticipant.id).all()


def count_votes(db: Session, plan_id: int) -> Dict[str, int]:
    """
    참여자 전체를 다시 집계해 {yes, maybe, no, pending} 반환.
    증분 계산이 아니라 매번 GROUP BY (동시 writer 간 drift 방지).
    """
    rows = (
        db.query(PlanParticipant.vote, func.count(PlanParticipant.id))
        .filter(PlanParticipant.plan_id == plan_id)
        .group_by(PlanParticipant.vote)
        .all()
    )
    counts = {"yes": 0, "maybe": 0, "no": 0, "pending": 0}
    for vote, n in rows:
        counts[vote if vote is not None else "pending"] += n
    return counts
