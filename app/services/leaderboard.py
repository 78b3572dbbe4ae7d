# 그룹 리더보드: 점수 내림차순 + 위치 기반 순위 + 1~3위 마커

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models.group import Group, GroupMember
from app.models.profile import Profile

MARKERS = ("gold", "silver", "bronze")


@dataclass
class MemberSnapshot:
    user_id: int
    name: str
    commitment_score: int
    total_attended: int = 0
    total_flaked: int = 0


@dataclass
class MemberStats:
    plans_attended: int
    plans_flaked: int
    attendance_rate: int


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: int
    name: str
    score: int
    stats: MemberStats
    marker: Optional[str] = field(default=None)


def attendance_rate(attended: int, flaked: int) -> int:
    """출석률(%). 기록이 없으면 100. 반올림은 .5 올림 (round()의 은행가 반올림 아님)."""
    total = attended + flaked
    if total == 0:
        return 100
    return int(math.floor(attended * 100 / total + 0.5))


def rank_members(members: Iterable[MemberSnapshot]) -> List[LeaderboardEntry]:
    """
    점수 내림차순 안정 정렬. 동점이면 입력 순서 유지, 순위는 1..N 위치 그대로 (공동 순위 없음).
    """
    ordered = sorted(members, key=lambda m: m.commitment_score, reverse=True)
    entries = []
    for index, member in enumerate(ordered):
        entries.append(
            LeaderboardEntry(
                rank=index + 1,
                user_id=member.user_id,
                name=member.name,
                score=member.commitment_score,
                stats=MemberStats(
                    plans_attended=member.total_attended,
                    plans_flaked=member.total_flaked,
                    attendance_rate=attendance_rate(member.total_attended, member.total_flaked),
                ),
                marker=MARKERS[index] if index < len(MARKERS) else None,
            )
        )
    return entries


def get_member_snapshots(db: Session, group_id: int) -> List[MemberSnapshot]:
    """그룹 멤버 + 프로필 스냅샷 (명단 순서)."""
    if db.query(Group).filter(Group.id == group_id).first() is None:
        raise NotFoundError("Group not found")
    rows = (
        db.query(GroupMember, Profile)
        .join(Profile, Profile.id == GroupMember.user_id)
        .filter(GroupMember.group_id == group_id)
        .order_by(GroupMember.id)
        .all()
    )
    return [
        MemberSnapshot(
            user_id=profile.id,
            name=profile.full_name,
            commitment_score=profile.commitment_score,
            total_attended=profile.total_attended or 0,
            total_flaked=profile.total_flaked or 0,
        )
        for _, profile in rows
    ]


def get_leaderboard(db: Session, group_id: int) -> List[LeaderboardEntry]:
    return rank_members(get_member_snapshots(db, group_id))
