"""
Voting: validation, idempotent re-votes, vote tally, auto-confirmation threshold.
"""
import pytest

from app.crud.group_crud import add_member
from app.crud.participant_crud import cast_vote
from app.crud.plan_crud import count_votes, create_plan, get_participants
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.profile import Profile
from app.services.auto_confirm import should_confirm


def _vote(db, plan, user, vote):
    result = cast_vote(db, plan.id, user.id, vote)
    db.commit()
    return result


def test_plan_starts_with_roster_as_pending_participants(db, make_group, make_plan):
    group, members = make_group(size=4)
    plan = make_plan(group, members[0])

    participants = get_participants(db, plan.id)
    assert [p.user_id for p in participants] == [m.id for m in members]
    assert all(p.vote is None and p.status == "pending" and not p.checked_in for p in participants)
    assert plan.status == "proposed"


def test_participants_are_a_snapshot_of_the_roster(db, make_group, make_plan):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])

    newcomer = Profile(full_name="late joiner")
    db.add(newcomer)
    db.flush()
    add_member(db, group.id, newcomer.id)
    db.commit()

    assert len(get_participants(db, plan.id)) == 2
    with pytest.raises(NotFoundError):
        cast_vote(db, plan.id, newcomer.id, "yes")


@pytest.mark.parametrize("min_attendees", [1, 7])
def test_min_attendees_out_of_range(db, make_group, min_attendees):
    group, members = make_group(size=2)
    with pytest.raises(ValidationError):
        create_plan(db, "evt-1", group.id, members[0].id, min_attendees, planned_date=None)


def test_vote_updates_status(db, make_group, make_plan):
    group, members = make_group(size=4)
    plan = make_plan(group, members[0])

    _vote(db, plan, members[1], "maybe")
    result = _vote(db, plan, members[2], "no")

    by_user = {p.user_id: p for p in result.participants}
    assert by_user[members[1].id].status == "maybe"
    assert by_user[members[2].id].status == "declined"
    assert by_user[members[2].id].voted_at is not None
    assert result.counts == {"yes": 0, "maybe": 1, "no": 1, "pending": 2}


def test_invalid_vote_rejected(db, make_group, make_plan):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])
    with pytest.raises(ValidationError):
        cast_vote(db, plan.id, members[1].id, "perhaps")


def test_unknown_plan(db, make_group):
    group, members = make_group(size=2)
    with pytest.raises(NotFoundError):
        cast_vote(db, 9999, members[0].id, "yes")


def test_repeat_vote_is_a_noop(db, make_group, make_plan):
    group, members = make_group(size=4)
    plan = make_plan(group, members[0])

    first = _vote(db, plan, members[1], "yes")
    voted_at = next(p.voted_at for p in first.participants if p.user_id == members[1].id)

    second = _vote(db, plan, members[1], "yes")
    assert first.changed is True
    assert second.changed is False
    assert next(p.voted_at for p in second.participants if p.user_id == members[1].id) == voted_at
    assert second.counts["yes"] == 1


def test_change_of_vote_is_last_write_wins(db, make_group, make_plan):
    group, members = make_group(size=4)
    plan = make_plan(group, members[0])

    _vote(db, plan, members[1], "yes")
    result = _vote(db, plan, members[1], "no")
    assert result.counts["yes"] == 0
    assert result.counts["no"] == 1


def test_auto_confirm_on_threshold(db, make_group, make_plan):
    group, members = make_group(size=4)
    plan = make_plan(group, members[0], min_attendees=3)

    results = [_vote(db, plan, m, v) for m, v in zip(members, ["no", "yes", "yes", "yes"])]

    assert [r.auto_confirmed for r in results] == [False, False, False, True]
    final = results[-1]
    assert final.plan.status == "confirmed"
    assert final.plan.confirmed_at is not None
    assert final.counts == {"yes": 3, "maybe": 0, "no": 1, "pending": 0}


def test_confirmation_fires_once(db, make_group, make_plan):
    group, members = make_group(size=4)
    plan = make_plan(group, members[0], min_attendees=2)

    assert _vote(db, plan, members[0], "yes").auto_confirmed is False
    assert _vote(db, plan, members[1], "yes").auto_confirmed is True
    # 확정 후에도 투표는 가능하지만 다시 확정되지 않음
    assert _vote(db, plan, members[2], "yes").auto_confirmed is False
    assert _vote(db, plan, members[3], "maybe").auto_confirmed is False


def test_confirmed_plan_stays_confirmed_when_votes_drop(db, make_group, make_plan):
    group, members = make_group(size=3)
    plan = make_plan(group, members[0], min_attendees=2)
    _vote(db, plan, members[0], "yes")
    _vote(db, plan, members[1], "yes")

    result = _vote(db, plan, members[1], "no")
    assert result.plan.status == "confirmed"
    assert count_votes(db, plan.id)["yes"] == 1


@pytest.mark.parametrize("status", ["completed", "cancelled"])
def test_voting_closed_on_terminal_plans(db, make_group, make_plan, status):
    group, members = make_group(size=2)
    plan = make_plan(group, members[0])
    plan.status = status
    db.commit()

    with pytest.raises(ConflictError):
        cast_vote(db, plan.id, members[1].id, "yes")


def test_should_confirm():
    assert should_confirm("proposed", 3, 3) is True
    assert should_confirm("proposed", 3, 2) is False
    assert should_confirm("confirmed", 3, 5) is False
    assert should_confirm("cancelled", 2, 4) is False
