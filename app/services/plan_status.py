# Plan status state machine: allowed transitions only.
# proposed  -> confirmed, cancelled
# confirmed -> completed, cancelled
# completed -> (none)
# cancelled -> (none)

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.errors import ConflictError
from app.models.plan import Plan, PlanStatus

logger = logging.getLogger(__name__)

# Allowed target statuses from each current status.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    PlanStatus.PROPOSED.value: {PlanStatus.CONFIRMED.value, PlanStatus.CANCELLED.value},
    PlanStatus.CONFIRMED.value: {PlanStatus.COMPLETED.value, PlanStatus.CANCELLED.value},
    PlanStatus.COMPLETED.value: set(),
    PlanStatus.CANCELLED.value: set(),
}

# Timestamp column stamped when entering each status.
TIMESTAMP_FIELDS: dict[str, str] = {
    PlanStatus.CONFIRMED.value: "confirmed_at",
    PlanStatus.COMPLETED.value: "completed_at",
    PlanStatus.CANCELLED.value: "cancelled_at",
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def status_value(status) -> str:
    """PlanStatus 또는 str → str."""
    return getattr(status, "value", status)


def check_status_transition(current: str, target: str) -> Optional[str]:
    """
    Validate status transition. Returns None if allowed, else a clear error message for HTTP 409.
    """
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_str = ", ".join(sorted(allowed)) if allowed else "none"
        return (
            f"Transition from {current} to {target} is not allowed. "
            f"From {current} only allowed: {allowed_str}."
        )
    return None


def transition_plan(db: Session, plan: Plan, target: str) -> bool:
    """
    Move plan to target status with a compare-and-swap UPDATE.

    - target already holds -> False (no-op, not an error)
    - illegal transition -> ConflictError
    - UPDATE ... WHERE id = :id AND status = :current; True only when this call changed the row.
      A caller that loses a concurrent race re-reads the plan: False if the plan now
      holds target, ConflictError otherwise.

    Flushes pending changes first. Does not commit.
    """
    target = status_value(target)
    current = status_value(plan.status)
    if current == target:
        return False

    error = check_status_transition(current, target)
    if error is not None:
        raise ConflictError(error)

    db.flush()
    values = {"status": target, TIMESTAMP_FIELDS[target]: datetime.now(timezone.utc)}
    result = db.execute(
        update(Plan)
        .where(Plan.id == plan.id, Plan.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.refresh(plan)

    if result.rowcount == 1:
        logger.info("plan %s: %s -> %s", plan.id, current, target)
        return True

    # 다른 요청이 먼저 상태를 바꿈
    now_status = status_value(plan.status)
    if now_status == target:
        logger.info("plan %s already %s (concurrent transition)", plan.id, target)
        return False
    raise ConflictError(check_status_transition(now_status, target) or f"Plan status changed to {now_status}.")
