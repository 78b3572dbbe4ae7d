# 그룹/멤버 CRUD

from typing import List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, NotFoundError
from app.models.group import ROLE_ADMIN, ROLE_MEMBER, Group, GroupMember
from app.models.participant import PlanParticipant, Vote
from app.models.profile import Profile


def get_group(db: Session, group_id: int) -> Group:
    group = db.query(Group).filter(Group.id == group_id).first()
    if group is None:
        raise NotFoundError("Group not found")
    return group


def create_group(db: Session, name: str, created_by: int) -> Group:
    """그룹 생성 + 생성자를 admin 멤버로 추가. ⚠️ commit 하지 않음."""
    if db.query(Profile).filter(Profile.id == created_by).first() is None:
        raise NotFoundError("Profile not found")
    group = Group(name=name, created_by=created_by)
    db.add(group)
    db.flush()
    db.add(GroupMember(group_id=group.id, user_id=created_by, role=ROLE_ADMIN))
    db.flush()
    return group


def add_member(db: Session, group_id: int, user_id: int, role: str = ROLE_MEMBER) -> GroupMember:
    """
    멤버 추가. 이미 존재하는 약속의 참여자에는 반영되지 않음 (생성 시점 스냅샷).
    ⚠️ commit 하지 않음.
    """
    get_group(db, group_id)
    if db.query(Profile).filter(Profile.id == user_id).first() is None:
        raise NotFoundError("Profile not found")
    existing = (
        db.query(GroupMember)
        .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        .first()
    )
    if existing is not None:
        raise ConflictError("Already a member of this group")
    member = GroupMember(group_id=group_id, user_id=user_id, role=role)
    try:
        with db.begin_nested():
            db.add(member)
            db.flush()
    except IntegrityError:
        # 동시에 같은 user가 추가되면 UniqueConstraint 위반
        raise ConflictError("Already a member of this group")
    return member


def get_roster(db: Session, group_id: int) -> List[int]:
    """현재 명단의 user_id 목록 (가입 순)."""
    rows = (
        db.query(GroupMember.user_id)
        .filter(GroupMember.group_id == group_id)
        .order_by(GroupMember.id)
        .all()
    )
    return [user_id for (user_id,) in rows]


def get_member_stats(db: Session, group_id: int) -> List[dict]:
    """
    멤버별 통계. 'flake'는 두 가지 의미를 별도 지표로 제공:
    - plans_flaked: 원장 카운터 (노쇼/늦은 취소)
    - plans_declined: 투표에서 no를 고른 횟수
    """
    get_group(db, group_id)
    declined = (
        db.query(PlanParticipant.user_id, func.count(PlanParticipant.id).label("declined_count"))
        .filter(PlanParticipant.vote == Vote.NO.value)
        .group_by(PlanParticipant.user_id)
        .subquery()
    )
    rows = (
        db.query(GroupMember, Profile, declined.c.declined_count)
        .join(Profile, Profile.id == GroupMember.user_id)
        .outerjoin(declined, declined.c.user_id == GroupMember.user_id)
        .filter(GroupMember.group_id == group_id)
        .order_by(GroupMember.id)
        .all()
    )
    return [
        {
            "user_id": profile.id,
            "name": profile.full_name,
            "role": member.role,
            "commitment_score": profile.commitment_score,
            "plans_attended": profile.total_attended,
            "plans_flaked": profile.total_flaked,
            "plans_declined": declined_count or 0,
        }
        for member, profile, declined_count in rows
    ]
