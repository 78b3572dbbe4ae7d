# 그룹/멤버/리더보드 API
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.crud.group_crud import add_member, create_group, get_member_stats
from app.database import get_db
from app.errors import PlanError
from app.realtime.sse_pubsub import ENTITY_GROUP, publish_group_change, stream_entity_events
from app.schemas.group import GroupCreate, GroupOut, LeaderboardEntryOut, MemberAdd, MemberStatsOut
from app.services.leaderboard import get_leaderboard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["Groups"])


@router.post("", response_model=GroupOut)
def post_group(body: GroupCreate, db: Session = Depends(get_db)) -> GroupOut:
    """그룹 생성. 생성자는 admin 멤버."""
    try:
        group = create_group(db, body.name, body.created_by)
        db.commit()
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    db.refresh(group)
    return GroupOut.model_validate(group)


@router.post("/{group_id}/members", response_model=List[MemberStatsOut])
async def post_member(group_id: int, body: MemberAdd, db: Session = Depends(get_db)) -> List[MemberStatsOut]:
    """멤버 추가. 이미 만들어진 약속의 참여자에는 추가되지 않음."""
    try:
        add_member(db, group_id, body.user_id, body.role)
        db.commit()
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        db.rollback()
        logger.exception("add member to group %s failed", group_id)
        raise HTTPException(status_code=500, detail="Failed to add member")

    await publish_group_change(group_id, "member_added", user_id=body.user_id)
    return [MemberStatsOut(**m) for m in get_member_stats(db, group_id)]


@router.get("/{group_id}/members", response_model=List[MemberStatsOut])
def read_members(group_id: int, db: Session = Depends(get_db)) -> List[MemberStatsOut]:
    """멤버 통계 (가입 순)."""
    try:
        return [MemberStatsOut(**m) for m in get_member_stats(db, group_id)]
    except PlanError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{group_id}/leaderboard", response_model=List[LeaderboardEntryOut])
def read_leaderboard(group_id: int, db: Session = Depends(get_db)) -> List[LeaderboardEntryOut]:
    """점수 내림차순 순위. 동점은 가입 순, 순위는 공유하지 않음."""
    try:
        entries = get_leaderboard(db, group_id)
    except PlanError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return [LeaderboardEntryOut.model_validate(entry) for entry in entries]


@router.get("/{group_id}/stream")
async def get_group_stream(group_id: int):
    """SSE: 그룹 변경 이벤트 (member_added, plan_created, scores_updated)."""
    return StreamingResponse(
        stream_entity_events(ENTITY_GROUP, group_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
