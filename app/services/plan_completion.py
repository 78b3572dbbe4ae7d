# 약속 완료/취소 처리: confirmed 참여자별 출석/노쇼 점수 반영 후 completed 전이

import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy.orm import Session

from app.crud.plan_crud import get_participants, get_plan_for_update
from app.errors import ConflictError, PartialFailure, PlanError
from app.models.ledger import CommitmentLedgerEntry
from app.models.participant import ParticipantStatus, PlanParticipant
from app.models.plan import Plan, PlanStatus
from app.services.commitment_ledger import Outcome, apply_outcome
from app.services.plan_status import check_status_transition, status_value, transition_plan

logger = logging.getLogger(__name__)


@dataclass
class CompletionSummary:
    total_attended: int
    total_no_shows: int
    already_completed: bool = False
    transitioned: bool = False  # 이 호출의 조건부 UPDATE 가 completed 로 바꿨을 때만 True


def outcome_for(participant: PlanParticipant) -> str:
    return Outcome.ATTENDED.value if participant.checked_in else Outcome.NO_SHOW.value


def summarize(participants: List[PlanParticipant]) -> CompletionSummary:
    attended = sum(1 for p in participants if p.checked_in)
    return CompletionSummary(total_attended=attended, total_no_shows=len(participants) - attended)


def has_ledger_entries(db: Session, plan_id: int) -> bool:
    """완료 처리 중 이미 반영된 점수가 있는지."""
    return (
        db.query(CommitmentLedgerEntry.id)
        .filter(CommitmentLedgerEntry.plan_id == plan_id)
        .first()
        is not None
    )


def complete_plan(db: Session, plan_id: int) -> CompletionSummary:
    """
    약속 완료.

    1) confirmed 참여자마다 checked_in → attended, 아니면 no_show 로 원장 반영
    2) plan: confirmed → completed (completed_at 기록)

    - 시작 시 plan 행을 FOR UPDATE 로 잠가 동시 취소와 직렬화.
    - 참여자 단위로 commit (원장 멱등 키 = plan+user). 중간에 실패하면 이미 반영된 참여자는
      재시도 시 건너뜀 → 같은 점수 변화가 두 번 적용되지 않음.
    - 한 명이라도 반영된 뒤 실패하면 원인과 무관하게 PartialFailure (processed/total 포함).
    - 이미 completed 인 약속은 원장 호출 없이 요약만 다시 계산해 반환.
    - 동시에 두 요청이 완료를 시도하면 transitioned=True 는 하나 (알림은 그 요청만).

    ⚠️ 이 함수는 commit 함 (참여자별 + 마지막 상태 전이).
    """
    plan = get_plan_for_update(db, plan_id)
    current_status = status_value(plan.status)
    confirmed = get_participants(db, plan_id, status=ParticipantStatus.CONFIRMED.value)

    if current_status == PlanStatus.COMPLETED.value:
        logger.info("plan %s already completed; returning summary only", plan_id)
        summary = summarize(confirmed)
        summary.already_completed = True
        return summary

    error = check_status_transition(current_status, PlanStatus.COMPLETED.value)
    if error is not None:
        raise ConflictError(error)

    processed = 0
    for participant in confirmed:
        try:
            apply_outcome(db, participant.user_id, outcome_for(participant), plan_id=plan_id)
            db.commit()
        except PlanError as exc:
            db.rollback()
            if processed == 0:
                raise
            logger.warning("plan %s completion stopped at user %s: %s", plan_id, participant.user_id, exc.message)
            raise PartialFailure(
                f"Plan completion interrupted after {processed} of {len(confirmed)} participants: {exc.message}",
                processed=processed,
                total=len(confirmed),
            ) from exc
        except Exception as exc:
            db.rollback()
            logger.exception("plan %s completion stopped at user %s", plan_id, participant.user_id)
            raise PartialFailure(
                f"Plan completion interrupted after {processed} of {len(confirmed)} participants; retry is safe",
                processed=processed,
                total=len(confirmed),
            ) from exc
        processed += 1

    plan = get_plan_for_update(db, plan_id)
    transitioned = transition_plan(db, plan, PlanStatus.COMPLETED.value)
    db.commit()

    summary = summarize(confirmed)
    summary.transitioned = transitioned
    logger.info(
        "plan %s completed: attended=%d no_shows=%d",
        plan_id, summary.total_attended, summary.total_no_shows,
    )
    return summary


def cancel_plan(db: Session, plan_id: int) -> tuple[Plan, bool]:
    """
    취소 (proposed/confirmed → cancelled). 점수 변화 없음.
    반환: (plan, 이번 호출로 취소되었는지).

    완료 처리 도중 멈춘 약속(원장에 이 약속 점수가 이미 있음)은 취소 불가 (409):
    완료 재시도로만 마무리.

    ⚠️ commit 하지 않음.
    """
    plan = get_plan_for_update(db, plan_id)
    if status_value(plan.status) == PlanStatus.CONFIRMED.value and has_ledger_entries(db, plan_id):
        raise ConflictError("Plan completion in progress; retry completion")
    return plan, transition_plan(db, plan, PlanStatus.CANCELLED.value)
