# 알림 트리거: 종류별 메시지 구성 → 수신자별 푸시 발송 → {sent, failed} 요약
#
# 상태 전이가 commit 된 뒤에만 호출됨. 발송 실패는 집계·로그만 하고 재시도/롤백하지 않음.

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.integrations.expo_push import STATUS_OK, send_push
from app.models.participant import PlanParticipant
from app.models.plan import Plan
from app.models.profile import Profile

logger = logging.getLogger(__name__)

PushGateway = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class NotificationKind(str, PyEnum):
    PLAN_INVITE = "plan_invite"
    PLAN_CONFIRMED = "plan_confirmed"
    VOTE_REMINDER = "vote_reminder"
    DAY_OF_REMINDER = "day_of_reminder"
    CHECK_IN = "check_in"
    PLAN_COMPLETED = "plan_completed"


@dataclass
class PlanInfo:
    """세션 밖(백그라운드 태스크)에서도 쓸 수 있는 plan 스냅샷."""

    id: int
    title: Optional[str]
    planned_date: Optional[datetime]

    @property
    def display_title(self) -> str:
        return self.title or "your plan"


@dataclass
class Recipient:
    user_id: int
    push_token: Optional[str] = None


@dataclass
class NotificationRecord:
    recipient: int
    plan_id: int
    message: Dict[str, Any]
    kind: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    delivered: bool = False
    error: Optional[str] = None


@dataclass
class NotificationSummary:
    sent: int = 0
    failed: int = 0
    records: List[NotificationRecord] = field(default_factory=list)

    def add(self, record: NotificationRecord) -> None:
        self.records.append(record)
        if record.delivered:
            self.sent += 1
        else:
            self.failed += 1


def plan_info(plan: Plan) -> PlanInfo:
    return PlanInfo(id=plan.id, title=plan.title, planned_date=plan.planned_date)


def _fmt_date(dt: datetime) -> str:
    return f"{dt:%b} {dt.day}"


def _fmt_time(dt: datetime) -> str:
    return f"{dt.hour % 12 or 12}:{dt:%M} {dt:%p}"


def compose_message(kind: str, plan: PlanInfo, **context: Any) -> Dict[str, Any]:
    """종류별 {title, body, data:{kind, planId}}."""
    kind = getattr(kind, "value", kind)
    event_title = plan.display_title
    when = plan.planned_date

    if kind == NotificationKind.PLAN_INVITE.value:
        creator = context.get("creator_name") or "Someone"
        title, body = "New Plan Invitation", f"{creator} invited you to {event_title}"
    elif kind == NotificationKind.PLAN_CONFIRMED.value:
        title = "Plan Confirmed! 🎉"
        body = f"{event_title} on {_fmt_date(when)} at {_fmt_time(when)}" if when else f"{event_title} is on!"
    elif kind == NotificationKind.VOTE_REMINDER.value:
        title, body = "Vote Needed", f"Your group is waiting on your vote for {event_title}"
    elif kind == NotificationKind.DAY_OF_REMINDER.value:
        title = "Today's Plan"
        body = f"{event_title} starts at {_fmt_time(when)}." if when else f"{event_title} is today."
        if context.get("venue"):
            body += f" @ {context['venue']}."
        body += " See you there!"
    elif kind == NotificationKind.CHECK_IN.value:
        name = context.get("user_name") or "Someone"
        title, body = event_title, f"{name} just arrived!"
    elif kind == NotificationKind.PLAN_COMPLETED.value:
        title, body = "Plan Completed", f"{event_title} is wrapped up. Your commitment score has been updated."
    else:
        raise ValueError(f"Unknown notification kind: {kind}")

    return {"title": title, "body": body, "data": {"kind": kind, "planId": plan.id}}


async def _deliver(record: NotificationRecord, token: Optional[str], gateway: PushGateway) -> NotificationRecord:
    """레코드 1건 발송 후 delivered/error 채워서 반환."""
    if not token:
        record.error = "no push token"
        return record
    try:
        result = await gateway({"token": token, **record.message})
    except Exception as exc:
        logger.exception("push to user %s failed (%s, plan %s)", record.recipient, record.kind, record.plan_id)
        record.error = str(exc) or type(exc).__name__
        return record
    if (result or {}).get("status") == STATUS_OK:
        record.delivered = True
    else:
        record.error = (result or {}).get("message") or "push rejected"
        logger.warning(
            "push to user %s rejected (%s, plan %s): %s",
            record.recipient, record.kind, record.plan_id, record.error,
        )
    return record


async def dispatch(
    kind: str,
    plan: PlanInfo,
    recipients: Iterable[Recipient],
    gateway: PushGateway = send_push,
    **context: Any,
) -> NotificationSummary:
    """
    수신자별 발송. 토큰 없는 수신자는 발송 시도 없이 failed.
    gateway 결과가 ok가 아니거나 예외면 failed (재시도 없음).
    """
    kind = getattr(kind, "value", kind)
    message = compose_message(kind, plan, **context)
    summary = NotificationSummary()

    for recipient in recipients:
        record = NotificationRecord(recipient=recipient.user_id, plan_id=plan.id, message=message, kind=kind)
        summary.add(await _deliver(record, recipient.push_token, gateway))

    if summary.failed:
        logger.warning("%s for plan %s: sent=%d failed=%d", kind, plan.id, summary.sent, summary.failed)
    else:
        logger.info("%s for plan %s: sent=%d", kind, plan.id, summary.sent)
    return summary


def get_recipients(
    db: Session,
    plan_id: int,
    status: Optional[str] = None,
    unvoted: bool = False,
    exclude_user_id: Optional[int] = None,
) -> List[Recipient]:
    """약속 참여자 중 조건에 맞는 수신자 (토큰 포함)."""
    q = (
        db.query(PlanParticipant.user_id, Profile.push_token)
        .join(Profile, Profile.id == PlanParticipant.user_id)
        .filter(PlanParticipant.plan_id == plan_id)
    )
    if status is not None:
        q = q.filter(PlanParticipant.status == status)
    if unvoted:
        q = q.filter(PlanParticipant.vote.is_(None))
    if exclude_user_id is not None:
        q = q.filter(PlanParticipant.user_id != exclude_user_id)
    return [Recipient(user_id=user_id, push_token=token) for user_id, token in q.order_by(PlanParticipant.id).all()]


def get_push_gateway() -> PushGateway:
    """FastAPI 의존성. 테스트에서는 dependency_overrides 로 가짜 gateway 주입."""
    return send_push
