"""
Commitment score ledger: outcome deltas, clamping, counters, idempotency keys, consistency bonus.
"""
import pytest

from app.errors import NotFoundError, ValidationError
from app.models.ledger import CommitmentLedgerEntry
from app.models.participant import PlanParticipant
from app.models.profile import Profile
from app.services.commitment_ledger import (
    BONUS_POINTS,
    OUTCOME_RULES,
    apply_outcome,
    award_consistency_bonus,
    clamp_score,
    get_commitment_history,
)


@pytest.fixture
def profile(db):
    p = Profile(full_name="Mina", commitment_score=50)
    db.add(p)
    db.commit()
    return p


@pytest.mark.parametrize(
    "outcome, change, attended, flaked",
    [
        ("attended", 2, 1, 0),
        ("no_show", -10, 0, 1),
        ("cancelled_late", -8, 0, 1),
        ("cancelled_early", -3, 0, 0),
    ],
)
def test_outcome_rules(db, profile, outcome, change, attended, flaked):
    result = apply_outcome(db, profile.id, outcome)
    db.commit()

    assert result.applied is True
    assert result.previous_score == 50
    assert result.new_score == 50 + change
    assert result.change == change
    assert profile.commitment_score == 50 + change
    assert profile.total_attended == attended
    assert profile.total_flaked == flaked
    assert OUTCOME_RULES[outcome].change == change


def test_clamp_score():
    assert clamp_score(-5) == 0
    assert clamp_score(0) == 0
    assert clamp_score(100) == 100
    assert clamp_score(102) == 100
    assert clamp_score(57) == 57


def test_score_never_below_zero(db, profile):
    profile.commitment_score = 5
    db.commit()

    result = apply_outcome(db, profile.id, "no_show")
    db.commit()

    assert result.new_score == 0
    assert result.change == -5  # clamp 후 실제 변화량
    assert profile.commitment_score == 0
    assert profile.total_flaked == 1


def test_score_never_above_hundred(db, profile):
    profile.commitment_score = 99
    db.commit()

    apply_outcome(db, profile.id, "attended")
    apply_outcome(db, profile.id, "attended")
    db.commit()

    assert profile.commitment_score == 100
    assert profile.total_attended == 2


def test_unknown_outcome_rejected(db, profile):
    with pytest.raises(ValidationError):
        apply_outcome(db, profile.id, "vanished")


def test_unknown_profile(db):
    with pytest.raises(NotFoundError):
        apply_outcome(db, 9999, "attended")


def test_plan_scoped_outcome_applies_once(db, make_group, make_plan):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])
    user = members[1]

    first = apply_outcome(db, user.id, "no_show", plan_id=plan.id)
    db.commit()
    second = apply_outcome(db, user.id, "no_show", plan_id=plan.id)
    db.commit()

    assert first.applied is True
    assert second.applied is False
    assert second.new_score == first.new_score == 90
    db.refresh(user)
    assert user.commitment_score == 90
    assert user.total_flaked == 1
    entries = db.query(CommitmentLedgerEntry).filter(CommitmentLedgerEntry.user_id == user.id).all()
    assert len(entries) == 1
    assert entries[0].idempotency_key == f"plan:{plan.id}:user:{user.id}"


def test_outcomes_without_plan_are_not_deduplicated(db, profile):
    apply_outcome(db, profile.id, "cancelled_early")
    apply_outcome(db, profile.id, "cancelled_early")
    db.commit()
    assert profile.commitment_score == 44


def _attend_plans(db, make_plan, group, members, user, count, checked_in=True):
    for _ in range(count):
        plan = make_plan(group, members[0])
        participant = (
            db.query(PlanParticipant)
            .filter(PlanParticipant.plan_id == plan.id, PlanParticipant.user_id == user.id)
            .one()
        )
        participant.vote = "yes"
        participant.status = "confirmed"
        participant.checked_in = checked_in
    db.commit()


def test_consistency_bonus_after_five_check_ins(db, make_group, make_plan):
    group, members = make_group(size=2, scores=[100, 80])
    user = members[1]
    _attend_plans(db, make_plan, group, members, user, 5)

    assert award_consistency_bonus(db, user.id) == BONUS_POINTS
    db.commit()
    db.refresh(user)
    assert user.commitment_score == 85
    # 카운터는 보너스로 바뀌지 않음
    assert user.total_attended == 0


def test_consistency_bonus_once_per_window(db, make_group, make_plan):
    group, members = make_group(size=2, scores=[100, 80])
    user = members[1]
    _attend_plans(db, make_plan, group, members, user, 5)

    assert award_consistency_bonus(db, user.id) == BONUS_POINTS
    db.commit()
    assert award_consistency_bonus(db, user.id) == 0
    db.commit()
    db.refresh(user)
    assert user.commitment_score == 85

    # 새 참여가 생기면 새 구간
    _attend_plans(db, make_plan, group, members, user, 1)
    assert award_consistency_bonus(db, user.id) == BONUS_POINTS


def test_no_bonus_with_short_history(db, make_group, make_plan):
    group, members = make_group(size=2, scores=[100, 80])
    user = members[1]
    _attend_plans(db, make_plan, group, members, user, 4)
    assert award_consistency_bonus(db, user.id) == 0


def test_no_bonus_if_latest_missed(db, make_group, make_plan):
    group, members = make_group(size=2, scores=[100, 80])
    user = members[1]
    _attend_plans(db, make_plan, group, members, user, 4)
    _attend_plans(db, make_plan, group, members, user, 1, checked_in=False)
    assert award_consistency_bonus(db, user.id) == 0
    db.refresh(user)
    assert user.commitment_score == 80


def test_bonus_is_clamped(db, make_group, make_plan):
    group, members = make_group(size=2, scores=[100, 98])
    user = members[1]
    _attend_plans(db, make_plan, group, members, user, 5)
    award_consistency_bonus(db, user.id)
    db.commit()
    db.refresh(user)
    assert user.commitment_score == 100


def test_commitment_history_newest_first(db, make_group, make_plan):
    group, members = make_group(size=2)
    first = make_plan(group, members[0], title="first")
    second = make_plan(group, members[0], title="second")

    history = get_commitment_history(db, members[1].id)
    assert [h["plan_id"] for h in history] == [second.id, first.id]
    assert history[0]["status"] == "pending"
    assert history[0]["checked_in"] is False
