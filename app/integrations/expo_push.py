# Expo Push API 연동 (단건 푸시 발송)

import logging
import os
from typing import Any, Dict

import httpx

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
EXPO_ACCESS_TOKEN = os.getenv("EXPO_ACCESS_TOKEN", "")
PUSH_TIMEOUT_SEC = float(os.getenv("PUSH_TIMEOUT_SEC", "10"))

STATUS_OK = "ok"
STATUS_ERROR = "error"


def _to_expo(message: Dict[str, Any]) -> Dict[str, Any]:
    """{token, title, body, data} → Expo 메시지 형식."""
    return {
        "to": message["token"],
        "sound": "default",
        "title": message.get("title") or "",
        "body": message.get("body") or "",
        "data": message.get("data") or {},
        "priority": "high",
    }


async def send_push(message: Dict[str, Any]) -> Dict[str, str]:
    """
    푸시 1건 발송. 반환: {"status": "ok"} 또는 {"status": "error", "message": ...}
    네트워크 오류도 예외 대신 error 로 돌려줌 (재시도 없음).
    """
    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
        "Content-Type": "application/json",
    }
    if EXPO_ACCESS_TOKEN:
        headers["Authorization"] = f"Bearer {EXPO_ACCESS_TOKEN}"

    try:
        async with httpx.AsyncClient(timeout=PUSH_TIMEOUT_SEC) as client:
            resp = await client.post(EXPO_PUSH_URL, json=_to_expo(message), headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("expo push request failed: %s", exc)
        return {"status": STATUS_ERROR, "message": str(exc)}

    if resp.status_code != 200:
        return {"status": STATUS_ERROR, "message": f"Expo API 오류: HTTP {resp.status_code}"}
    try:
        data = resp.json().get("data") or {}
    except ValueError:
        return {"status": STATUS_ERROR, "message": "Invalid JSON from Expo"}
    # 단건 발송이면 data는 ticket dict
    if isinstance(data, list):
        data = data[0] if data else {}
    if data.get("status") == STATUS_ERROR:
        return {"status": STATUS_ERROR, "message": data.get("message") or ""}
    return {"status": STATUS_OK}
