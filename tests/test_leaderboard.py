"""
Group leaderboard: ordering, positional ranks, markers, attendance rate rounding; member stats.
"""
import pytest

from app.crud.group_crud import get_member_stats
from app.crud.participant_crud import cast_vote
from app.errors import NotFoundError
from app.services.leaderboard import (
    MemberSnapshot,
    attendance_rate,
    get_leaderboard,
    rank_members,
)


@pytest.mark.parametrize(
    "attended, flaked, expected",
    [
        (0, 0, 100),
        (1, 2, 33),
        (2, 1, 67),
        (1, 7, 13),  # 12.5 → 13 (.5 올림)
        (1, 1, 50),
        (3, 0, 100),
        (0, 4, 0),
    ],
)
def test_attendance_rate(attended, flaked, expected):
    assert attendance_rate(attended, flaked) == expected


def test_ties_keep_input_order_with_distinct_ranks():
    members = [
        MemberSnapshot(user_id=1, name="a", commitment_score=90),
        MemberSnapshot(user_id=2, name="b", commitment_score=90),
        MemberSnapshot(user_id=3, name="c", commitment_score=70),
    ]
    entries = rank_members(members)
    assert [(e.user_id, e.rank) for e in entries] == [(1, 1), (2, 2), (3, 3)]
    assert [e.marker for e in entries] == ["gold", "silver", "bronze"]


def test_markers_only_for_top_three():
    members = [MemberSnapshot(user_id=i, name=str(i), commitment_score=100 - i) for i in range(5)]
    entries = rank_members(members)
    assert [e.marker for e in entries] == ["gold", "silver", "bronze", None, None]
    assert [e.rank for e in entries] == [1, 2, 3, 4, 5]


def test_empty_group():
    assert rank_members([]) == []


def test_leaderboard_from_database(db, make_group):
    group, members = make_group(size=3, scores=[70, 95, 88], names=["Ana", "Ben", "Cy"])
    members[2].total_attended = 2
    members[2].total_flaked = 1
    db.commit()

    entries = get_leaderboard(db, group.id)
    assert [e.name for e in entries] == ["Ben", "Cy", "Ana"]
    assert [e.score for e in entries] == [95, 88, 70]
    assert entries[1].stats.attendance_rate == 67
    assert entries[0].stats.attendance_rate == 100


def test_leaderboard_unknown_group(db):
    with pytest.raises(NotFoundError):
        get_leaderboard(db, 424242)


def test_member_stats_separate_flaked_and_declined(db, make_group, make_plan):
    group, members = make_group(size=3)
    first = make_plan(group, members[0])
    second = make_plan(group, members[0])
    for plan in (first, second):
        cast_vote(db, plan.id, members[1].id, "no")
    members[2].total_flaked = 1
    db.commit()

    stats = {s["user_id"]: s for s in get_member_stats(db, group.id)}
    assert stats[members[1].id]["plans_declined"] == 2
    assert stats[members[1].id]["plans_flaked"] == 0
    assert stats[members[2].id]["plans_declined"] == 0
    assert stats[members[2].id]["plans_flaked"] == 1
    assert stats[members[0].id]["role"] == "admin"
