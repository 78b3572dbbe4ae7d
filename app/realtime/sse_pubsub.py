# SSE + Redis Pub/Sub: 약속/그룹 변경 이벤트 실시간 전달
# 이벤트는 {entity, id, operation, ts, ...} 형태 → 클라이언트가 전체 재조회 없이 부분 갱신 가능
# Redis Pub/Sub: 멀티 워커 환경에서도 발행/구독 분리

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict

import redis.asyncio as redis

logger = logging.getLogger(__name__)

# Docker 환경에서는 localhost가 아니라 서비스명(redis)을 사용해야 함
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CHANNEL_SUFFIX = ":changes"
HEARTBEAT_INTERVAL = 15.0

ENTITY_PLAN = "plan"
ENTITY_GROUP = "group"
ENTITIES = frozenset({ENTITY_PLAN, ENTITY_GROUP})

# 모듈 단일 클라이언트 재사용 (매 루프마다 새 연결 생성 방지)
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


def channel_for(entity: str, entity_id: int) -> str:
    return f"{entity}:{entity_id}{CHANNEL_SUFFIX}"


def build_event(entity: str, entity_id: int, operation: str, **fields: Any) -> Dict[str, Any]:
    return {
        "entity": entity,
        "id": entity_id,
        "operation": operation,
        "ts": datetime.now(timezone.utc).isoformat(),
        **fields,
    }


async def publish_change(entity: str, entity_id: int, operation: str, **fields: Any) -> None:
    """commit 후 라우터에서 호출. Redis 미기동 등으로 실패해도 요청은 성공으로 유지."""
    payload = build_event(entity, entity_id, operation, **fields)
    try:
        await redis_client.publish(channel_for(entity, entity_id), json.dumps(payload, ensure_ascii=False, default=str))
    except Exception as exc:
        logger.warning("publish %s:%s %s failed: %s", entity, entity_id, operation, exc)


async def publish_plan_change(plan_id: int, operation: str, **fields: Any) -> None:
    await publish_change(ENTITY_PLAN, plan_id, operation, **fields)


async def publish_group_change(group_id: int, operation: str, **fields: Any) -> None:
    await publish_change(ENTITY_GROUP, group_id, operation, **fields)


def format_sse(data: str) -> str:
    """operation 을 SSE event 이름으로 사용."""
    try:
        event_name = json.loads(data).get("operation") or "changed"
    except (ValueError, AttributeError):
        event_name = "changed"
    return f"event: {event_name}\ndata: {data}\n\n"


async def stream_entity_events(entity: str, entity_id: int) -> AsyncGenerator[str, None]:
    """
    GET /plans/{id}/stream, /groups/{id}/stream 용.
    SSE는 long-lived connection이므로 예외·연결 해제 처리 필수.
    """
    channel = channel_for(entity, entity_id)
    pubsub = redis_client.pubsub()
    try:
        await pubsub.subscribe(channel)
        last_heartbeat = datetime.now(timezone.utc).timestamp()

        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            now = datetime.now(timezone.utc).timestamp()
            if now - last_heartbeat >= HEARTBEAT_INTERVAL:
                yield ": ping\n\n"
                last_heartbeat = now
            if message and message.get("type") == "message":
                yield format_sse(message.get("data") or "")
    except asyncio.CancelledError:
        pass
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.close()
