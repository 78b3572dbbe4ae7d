# 자동 확정: yes 수가 min_attendees 이상이 되는 순간 proposed → confirmed (약속당 1회)

import logging

from sqlalchemy.orm import Session

from app.models.plan import Plan, PlanStatus
from app.services.plan_status import status_value, transition_plan

logger = logging.getLogger(__name__)


def should_confirm(status: str, min_attendees: int, yes_count: int) -> bool:
    return status_value(status) == PlanStatus.PROPOSED.value and yes_count >= min_attendees


def evaluate_auto_confirmation(db: Session, plan: Plan, yes_count: int) -> bool:
    """
    임계치를 넘었으면 확정 전이 시도.

    반환값이 True인 호출자만 plan_confirmed 알림을 보냄.
    전이는 status='proposed' 조건부 UPDATE 이므로 동시에 임계치를 넘긴 요청이 여럿이어도 True는 하나.
    """
    if not should_confirm(plan.status, plan.min_attendees, yes_count):
        return False
    confirmed = transition_plan(db, plan, PlanStatus.CONFIRMED.value)
    if confirmed:
        logger.info("plan %s auto-confirmed (yes=%d, min=%d)", plan.id, yes_count, plan.min_attendees)
    return confirmed
