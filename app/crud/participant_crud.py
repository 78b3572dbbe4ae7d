# 투표/체크인 CRUD (plan 행 비관적 락으로 투표 직렬화)
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List

from sqlalchemy.orm import Session

from app.crud.plan_crud import count_votes, get_participants, get_plan, get_plan_for_update
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.participant import PlanParticipant, Vote, derive_status
from app.models.plan import Plan, PlanStatus
from app.services.auto_confirm import evaluate_auto_confirmation
from app.services.plan_status import TERMINAL_STATUSES, status_value

VALID_VOTES = frozenset(v.value for v in Vote)


@dataclass
class VoteResult:
    plan: Plan
    participants: List[PlanParticipant]
    counts: Dict[str, int]
    auto_confirmed: bool
    changed: bool


def _get_participant(db: Session, plan_id: int, user_id: int) -> PlanParticipant:
    participant = (
        db.query(PlanParticipant)
        .filter(
            PlanParticipant.plan_id == plan_id,
            PlanParticipant.user_id == user_id,
        )
        .first()
    )
    if participant is None:
        raise NotFoundError("Not a participant of this plan")
    return participant


def cast_vote(db: Session, plan_id: int, user_id: int, vote: str) -> VoteResult:
    """
    투표 기록.

    - FOR UPDATE로 plan 행 잠금 → 같은 약속의 투표가 순서대로 처리되어 yes 집계가 정확함.
    - 같은 값을 다시 보내면 아무것도 바꾸지 않음 (voted_at 포함).
    - 집계는 매번 전체 재계산 후 자동 확정 평가.
    - 완료/취소된 약속에는 투표 불가 (409). 확정 후 투표 변경은 허용.

    ⚠️ 이 함수는 commit/rollback 하지 않음. 호출자(라우터)가 트랜잭션을 제어.
    """
    vote = getattr(vote, "value", vote)
    if vote not in VALID_VOTES:
        raise ValidationError(f"Invalid vote: {vote!r}. Allowed: maybe, no, yes")

    plan = get_plan_for_update(db, plan_id)
    participant = _get_participant(db, plan_id, user_id)

    current_status = status_value(plan.status)
    if current_status in TERMINAL_STATUSES:
        raise ConflictError(f"Voting is closed: plan is {current_status}")

    changed = participant.vote != vote
    if changed:
        # last-write-wins (본인 행만 수정하므로 버전 체크 없음)
        participant.vote = vote
        participant.status = derive_status(vote)
        participant.voted_at = datetime.now(timezone.utc)
        db.flush()

    counts = count_votes(db, plan_id)
    auto_confirmed = evaluate_auto_confirmation(db, plan, counts["yes"])

    return VoteResult(
        plan=plan,
        participants=get_participants(db, plan_id),
        counts=counts,
        auto_confirmed=auto_confirmed,
        changed=changed,
    )


def check_in(db: Session, plan_id: int, user_id: int) -> bool:
    """
    체크인 (확정된 약속에서만).
    반환: 이번 호출로 체크인되었으면 True, 이미 체크인 상태면 False.

    ⚠️ 이 함수는 commit/rollback 하지 않음.
    """
    plan = get_plan(db, plan_id)
    participant = _get_participant(db, plan_id, user_id)
    current_status = status_value(plan.status)
    if current_status != PlanStatus.CONFIRMED.value:
        raise ConflictError(f"Check-in is only open for confirmed plans (plan is {current_status})")
    if participant.checked_in:
        return False
    participant.checked_in = True
    participant.checked_in_at = datetime.now(timezone.utc)
    return True
