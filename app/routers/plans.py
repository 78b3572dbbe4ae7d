# 약속 생성/투표/체크인/완료 API
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.crud.participant_crud import cast_vote, check_in
from app.crud.plan_crud import count_votes, create_plan, get_participants, get_plan
from app.crud.profile_crud import get_profile
from app.database import get_db
from app.errors import PlanError
from app.models.participant import ParticipantStatus
from app.models.plan import Plan, PlanStatus
from app.realtime.sse_pubsub import ENTITY_PLAN, publish_group_change, publish_plan_change, stream_entity_events
from app.schemas.plan import (
    CheckInOut,
    CompletionOut,
    ParticipantOut,
    PlanCreate,
    PlanDetailOut,
    PlanOut,
    ReminderOut,
    UserBody,
    VoteBody,
    VoteOut,
    counts_out,
)
from app.services.notification_service import (
    NotificationKind,
    PushGateway,
    dispatch,
    get_push_gateway,
    get_recipients,
    plan_info,
)
from app.services.plan_completion import cancel_plan, complete_plan
from app.services.plan_status import status_value

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["Plans"])


def _plan_detail(db: Session, plan: Plan) -> PlanDetailOut:
    return PlanDetailOut(
        plan=PlanOut.model_validate(plan),
        participants=[ParticipantOut.model_validate(p) for p in get_participants(db, plan.id)],
        counts=counts_out(count_votes(db, plan.id)),
    )


@router.post("", response_model=PlanDetailOut)
async def post_create_plan(
    body: PlanCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> PlanDetailOut:
    """약속 생성 + 현재 그룹 명단으로 참여자 시드. 생성자 외 참여자에게 초대 알림."""
    try:
        plan = create_plan(
            db,
            event_id=body.event_id,
            group_id=body.group_id,
            creator_id=body.creator_id,
            min_attendees=body.min_attendees,
            planned_date=body.planned_date,
            title=body.title,
            description=body.description,
        )
        db.commit()  # ✅ 트랜잭션 소유권: 라우터
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        db.rollback()
        logger.exception("create plan failed")
        raise HTTPException(status_code=500, detail="Failed to create plan")

    db.refresh(plan)
    creator = get_profile(db, plan.created_by)
    recipients = get_recipients(db, plan.id, exclude_user_id=plan.created_by)
    background_tasks.add_task(
        dispatch, NotificationKind.PLAN_INVITE.value, plan_info(plan), recipients, gateway,
        creator_name=creator.full_name,
    )
    await publish_plan_change(plan.id, "created", group_id=plan.group_id)
    await publish_group_change(plan.group_id, "plan_created", plan_id=plan.id)
    return _plan_detail(db, plan)


@router.get("/{plan_id}", response_model=PlanDetailOut)
def read_plan(plan_id: int, db: Session = Depends(get_db)) -> PlanDetailOut:
    """약속 + 참여자 + 투표 집계. 없으면 404."""
    try:
        plan = get_plan(db, plan_id)
    except PlanError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _plan_detail(db, plan)


@router.post("/{plan_id}/votes", response_model=VoteOut)
async def post_vote(
    plan_id: int,
    body: VoteBody,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> VoteOut:
    """투표. 임계치를 넘기는 투표가 확정을 일으키면 auto_confirmed=true (그 요청만 확정 알림 발송)."""
    try:
        result = cast_vote(db, plan_id, body.user_id, body.vote)
        db.commit()  # ✅ 트랜잭션 소유권: 라우터
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        db.rollback()
        logger.exception("vote on plan %s failed", plan_id)
        raise HTTPException(status_code=500, detail="Failed to cast vote")

    plan = result.plan
    if result.changed:
        await publish_plan_change(plan_id, "vote_cast", user_id=body.user_id, counts=result.counts)
    if result.auto_confirmed:
        recipients = get_recipients(db, plan_id, status=ParticipantStatus.CONFIRMED.value)
        background_tasks.add_task(dispatch, NotificationKind.PLAN_CONFIRMED.value, plan_info(plan), recipients, gateway)
        await publish_plan_change(plan_id, "confirmed", status=PlanStatus.CONFIRMED.value)

    return VoteOut(
        plan=PlanOut.model_validate(plan),
        participants=[ParticipantOut.model_validate(p) for p in result.participants],
        counts=counts_out(result.counts),
        auto_confirmed=result.auto_confirmed,
    )


@router.post("/{plan_id}/check-in", response_model=CheckInOut)
async def post_check_in(
    plan_id: int,
    body: UserBody,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> CheckInOut:
    """체크인. 처음 체크인할 때만 다른 참여자에게 도착 알림."""
    try:
        newly = check_in(db, plan_id, body.user_id)
        db.commit()
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        db.rollback()
        logger.exception("check-in on plan %s failed", plan_id)
        raise HTTPException(status_code=500, detail="Failed to check in")

    if newly:
        plan = get_plan(db, plan_id)
        user = get_profile(db, body.user_id)
        recipients = get_recipients(db, plan_id, exclude_user_id=body.user_id)
        background_tasks.add_task(
            dispatch, NotificationKind.CHECK_IN.value, plan_info(plan), recipients, gateway,
            user_name=user.full_name,
        )
        await publish_plan_change(plan_id, "checked_in", user_id=body.user_id)
    return CheckInOut(checked_in=True, already_checked_in=not newly)


@router.post("/{plan_id}/complete", response_model=CompletionOut)
async def post_complete(
    plan_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> CompletionOut:
    """
    완료 처리. confirmed 참여자별 출석/노쇼 점수 반영 후 completed.
    중간 실패 후 재호출해도 이미 반영된 참여자는 다시 반영되지 않음.
    """
    try:
        summary = complete_plan(db, plan_id)
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        db.rollback()
        logger.exception("complete plan %s failed", plan_id)
        raise HTTPException(status_code=500, detail="Failed to complete plan")

    if summary.transitioned:
        plan = get_plan(db, plan_id)
        recipients = get_recipients(db, plan_id, status=ParticipantStatus.CONFIRMED.value)
        background_tasks.add_task(dispatch, NotificationKind.PLAN_COMPLETED.value, plan_info(plan), recipients, gateway)
        await publish_plan_change(plan_id, "completed", status=PlanStatus.COMPLETED.value)
        await publish_group_change(plan.group_id, "scores_updated", plan_id=plan_id)
    return CompletionOut(total_attended=summary.total_attended, total_no_shows=summary.total_no_shows)


@router.post("/{plan_id}/cancel", response_model=PlanOut)
async def post_cancel(plan_id: int, db: Session = Depends(get_db)) -> PlanOut:
    """취소 (proposed/confirmed → cancelled). 점수 변화 없음. 이미 취소면 그대로 200."""
    try:
        plan, changed = cancel_plan(db, plan_id)
        db.commit()
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        db.rollback()
        logger.exception("cancel plan %s failed", plan_id)
        raise HTTPException(status_code=500, detail="Failed to cancel plan")

    db.refresh(plan)
    if changed:
        await publish_plan_change(plan_id, "cancelled", status=PlanStatus.CANCELLED.value)
    return PlanOut.model_validate(plan)


def _send_reminder(
    db: Session,
    plan_id: int,
    kind: NotificationKind,
    required_status: PlanStatus,
    background_tasks: BackgroundTasks,
    gateway: PushGateway,
    **filters,
) -> ReminderOut:
    try:
        plan = get_plan(db, plan_id)
    except PlanError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    current = status_value(plan.status)
    if current != required_status.value:
        raise HTTPException(
            status_code=409,
            detail=f"{kind.value} is only available for {required_status.value} plans (plan is {current})",
        )
    recipients = get_recipients(db, plan_id, **filters)
    background_tasks.add_task(dispatch, kind.value, plan_info(plan), recipients, gateway)
    return ReminderOut(kind=kind.value, recipients=len(recipients))


@router.post("/{plan_id}/reminders/vote", response_model=ReminderOut)
def post_vote_reminder(
    plan_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> ReminderOut:
    """아직 투표하지 않은 참여자에게 투표 요청 알림 (proposed 상태에서만)."""
    return _send_reminder(
        db, plan_id, NotificationKind.VOTE_REMINDER, PlanStatus.PROPOSED, background_tasks, gateway,
        unvoted=True,
    )


@router.post("/{plan_id}/reminders/day-of", response_model=ReminderOut)
def post_day_of_reminder(
    plan_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> ReminderOut:
    """당일 리마인더 (confirmed 상태, confirmed 참여자 대상)."""
    return _send_reminder(
        db, plan_id, NotificationKind.DAY_OF_REMINDER, PlanStatus.CONFIRMED, background_tasks, gateway,
        status=ParticipantStatus.CONFIRMED.value,
    )


@router.get("/{plan_id}/stream")
async def get_plan_stream(plan_id: int):
    """SSE: 약속 변경 이벤트 (created, vote_cast, confirmed, checked_in, completed, cancelled)."""
    return StreamingResponse(
        stream_entity_events(ENTITY_PLAN, plan_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
