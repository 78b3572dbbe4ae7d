"""
Plan status state machine: allowed transitions, no-op on same status, compare-and-swap under races.
"""
import pytest

from app.errors import ConflictError
from app.models.plan import Plan, PlanStatus
from app.services.auto_confirm import evaluate_auto_confirmation
from app.services.plan_status import ALLOWED_TRANSITIONS, check_status_transition, transition_plan

ALL = [s.value for s in PlanStatus]
LEGAL = {
    ("proposed", "confirmed"),
    ("proposed", "cancelled"),
    ("confirmed", "cancelled"),
    ("confirmed", "completed"),
}


@pytest.mark.parametrize("current", ALL)
@pytest.mark.parametrize("target", ALL)
def test_check_status_transition_matches_table(current, target):
    error = check_status_transition(current, target)
    if (current, target) in LEGAL:
        assert error is None
    else:
        assert error is not None
        assert current in error and target in error


def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS["completed"] == set()
    assert ALLOWED_TRANSITIONS["cancelled"] == set()


def _set_status(db, plan, status):
    plan.status = status
    db.commit()


@pytest.mark.parametrize("current", ALL)
@pytest.mark.parametrize("target", ALL)
def test_transition_plan(db, make_group, make_plan, current, target):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])
    _set_status(db, plan, current)

    if current == target:
        assert transition_plan(db, plan, target) is False
        assert plan.status == current
    elif (current, target) in LEGAL:
        assert transition_plan(db, plan, target) is True
        db.commit()
        db.refresh(plan)
        assert plan.status == target
    else:
        with pytest.raises(ConflictError):
            transition_plan(db, plan, target)
        db.rollback()
        db.refresh(plan)
        assert plan.status == current


def test_transition_stamps_timestamps(db, make_group, make_plan):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])
    assert plan.confirmed_at is None

    transition_plan(db, plan, "confirmed")
    db.commit()
    assert plan.confirmed_at is not None
    assert plan.completed_at is None

    transition_plan(db, plan, "completed")
    db.commit()
    assert plan.completed_at is not None
    assert plan.cancelled_at is None


def test_cancel_stamps_cancelled_at(db, make_group, make_plan):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])
    transition_plan(db, plan, "cancelled")
    db.commit()
    assert plan.cancelled_at is not None


def _stale_copy(session_factory, plan_id):
    """다른 요청이 먼저 읽어 둔 plan (이후 변경을 모르는 상태)."""
    session = session_factory()
    stale = session.get(Plan, plan_id)
    session.expunge(stale)
    session.rollback()
    return session, stale


def test_race_loser_sees_confirmed_and_does_not_transition(db, session_factory, make_group, make_plan):
    group, members = make_group(size=4)
    plan = make_plan(group, members[0])
    other, stale = _stale_copy(session_factory, plan.id)
    assert stale.status == "proposed"

    # 첫 번째 요청이 확정
    assert evaluate_auto_confirmation(db, plan, yes_count=3) is True
    db.commit()

    # 두 번째 요청은 예전 상태(proposed)를 보고 있었지만 조건부 UPDATE 에서 짐
    try:
        stale = other.merge(stale, load=False)
        assert evaluate_auto_confirmation(other, stale, yes_count=3) is False
        other.commit()
        assert stale.status == "confirmed"
    finally:
        other.close()


def test_race_loser_conflicts_when_plan_was_cancelled(db, session_factory, make_group, make_plan):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])
    other, stale = _stale_copy(session_factory, plan.id)

    transition_plan(db, plan, "cancelled")
    db.commit()

    try:
        stale = other.merge(stale, load=False)
        with pytest.raises(ConflictError):
            transition_plan(other, stale, "confirmed")
    finally:
        other.rollback()
        other.close()
