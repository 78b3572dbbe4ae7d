# 약속 점수 원장: outcome → 점수 변화/카운터 갱신. profiles.commitment_score 의 유일한 writer.

import logging
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.ledger import CommitmentLedgerEntry
from app.models.participant import ParticipantStatus, PlanParticipant
from app.models.plan import Plan
from app.models.profile import SCORE_MAX, SCORE_MIN, Profile

logger = logging.getLogger(__name__)


class Outcome(str, PyEnum):
    ATTENDED = "attended"
    NO_SHOW = "no_show"
    CANCELLED_LATE = "cancelled_late"
    CANCELLED_EARLY = "cancelled_early"


BONUS_OUTCOME = "consistency_bonus"
BONUS_POINTS = 5
BONUS_STREAK = 5


@dataclass(frozen=True)
class OutcomeRule:
    change: int
    attended: int = 0
    flaked: int = 0


OUTCOME_RULES: dict[str, OutcomeRule] = {
    Outcome.ATTENDED.value: OutcomeRule(change=2, attended=1),
    Outcome.NO_SHOW.value: OutcomeRule(change=-10, flaked=1),
    Outcome.CANCELLED_LATE.value: OutcomeRule(change=-8, flaked=1),
    Outcome.CANCELLED_EARLY.value: OutcomeRule(change=-3),
}


@dataclass
class ScoreUpdate:
    previous_score: int
    new_score: int
    change: int
    applied: bool = True  # False면 멱등 키로 이미 적용된 건을 재생(replay)


def clamp_score(value: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, value))


def plan_outcome_key(plan_id: int, user_id: int) -> str:
    return f"plan:{plan_id}:user:{user_id}"


def _bonus_key(user_id: int, plan_id: int) -> str:
    return f"bonus:{user_id}:plan:{plan_id}"


def _get_profile_for_update(db: Session, user_id: int) -> Profile:
    profile = db.query(Profile).filter(Profile.id == user_id).with_for_update().first()
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


def _find_entry(db: Session, key: str) -> Optional[CommitmentLedgerEntry]:
    return db.query(CommitmentLedgerEntry).filter(CommitmentLedgerEntry.idempotency_key == key).first()


def _replay(entry: CommitmentLedgerEntry) -> ScoreUpdate:
    return ScoreUpdate(
        previous_score=entry.previous_score,
        new_score=entry.new_score,
        change=entry.change,
        applied=False,
    )


def _write(
    db: Session,
    profile: Profile,
    outcome: str,
    change: int,
    plan_id: Optional[int],
    key: Optional[str],
    attended: int = 0,
    flaked: int = 0,
) -> ScoreUpdate:
    """SAVEPOINT 안에서 원장 1행 + 프로필 갱신. 키 충돌(동시 재시도)은 IntegrityError로 올라감."""
    previous = profile.commitment_score
    new_score = clamp_score(previous + change)
    with db.begin_nested():
        db.add(
            CommitmentLedgerEntry(
                user_id=profile.id,
                plan_id=plan_id,
                outcome=outcome,
                change=new_score - previous,
                previous_score=previous,
                new_score=new_score,
                idempotency_key=key,
            )
        )
        profile.commitment_score = new_score
        profile.total_attended += attended
        profile.total_flaked += flaked
        db.flush()
    return ScoreUpdate(previous_score=previous, new_score=new_score, change=new_score - previous)


def apply_outcome(db: Session, user_id: int, outcome: str, plan_id: Optional[int] = None) -> ScoreUpdate:
    """
    사용자 점수에 outcome 적용.

    - plan_id가 있으면 (plan, user) 멱등 키로 1회만 적용. 이미 있으면 기존 결과를 applied=False로 반환.
    - 점수는 0~100으로 clamp, change는 clamp 후 실제 변화량.
    - FOR UPDATE로 profile 행 잠금.

    ⚠️ commit 하지 않음. 호출자가 트랜잭션을 제어.
    """
    outcome = getattr(outcome, "value", outcome)
    rule = OUTCOME_RULES.get(outcome)
    if rule is None:
        raise ValidationError(f"Unknown outcome: {outcome}")

    key = plan_outcome_key(plan_id, user_id) if plan_id is not None else None
    if key is not None:
        existing = _find_entry(db, key)
        if existing is not None:
            logger.info("ledger: %s already applied, skipping", key)
            return _replay(existing)

    profile = _get_profile_for_update(db, user_id)
    try:
        result = _write(db, profile, outcome, rule.change, plan_id, key, rule.attended, rule.flaked)
    except IntegrityError:
        # 같은 키를 다른 요청이 먼저 기록함
        existing = _find_entry(db, key) if key is not None else None
        if existing is None:
            raise
        return _replay(existing)

    logger.info(
        "ledger: user %s %s %+d (%d -> %d)",
        user_id, outcome, result.change, result.previous_score, result.new_score,
    )
    return result


def award_consistency_bonus(db: Session, user_id: int) -> int:
    """
    최근 confirmed 참여 5건이 모두 체크인이면 +5 (clamp). 반환: 지급한 보너스(5) 또는 0.
    같은 5건 구간(가장 최근 참여 기준)에는 한 번만 지급.
    """
    recent = (
        db.query(PlanParticipant)
        .filter(
            PlanParticipant.user_id == user_id,
            PlanParticipant.status == ParticipantStatus.CONFIRMED.value,
        )
        .order_by(PlanParticipant.created_at.desc(), PlanParticipant.id.desc())
        .limit(BONUS_STREAK)
        .all()
    )
    if len(recent) < BONUS_STREAK:
        return 0
    if not all(p.checked_in for p in recent):
        return 0

    key = _bonus_key(user_id, recent[0].plan_id)
    if _find_entry(db, key) is not None:
        return 0

    profile = _get_profile_for_update(db, user_id)
    try:
        _write(db, profile, BONUS_OUTCOME, BONUS_POINTS, None, key)
    except IntegrityError:
        return 0
    logger.info("ledger: user %s consistency bonus +%d", user_id, BONUS_POINTS)
    return BONUS_POINTS


def get_ledger_entries(db: Session, user_id: int, limit: int = 50) -> List[CommitmentLedgerEntry]:
    return (
        db.query(CommitmentLedgerEntry)
        .filter(CommitmentLedgerEntry.user_id == user_id)
        .order_by(CommitmentLedgerEntry.id.desc())
        .limit(limit)
        .all()
    )


def get_commitment_history(db: Session, user_id: int, limit: int = 10) -> List[dict]:
    """사용자의 최근 참여 기록 (최신순)."""
    rows = (
        db.query(PlanParticipant, Plan)
        .join(Plan, Plan.id == PlanParticipant.plan_id)
        .filter(PlanParticipant.user_id == user_id)
        .order_by(PlanParticipant.created_at.desc(), PlanParticipant.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "plan_id": plan.id,
            "title": plan.title,
            "plan_status": plan.status,
            "planned_date": plan.planned_date,
            "vote": participant.vote,
            "status": participant.status,
            "checked_in": participant.checked_in,
        }
        for participant, plan in rows
    ]
