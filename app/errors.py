# 도메인 예외: crud/services 에서 raise, 라우터에서 HTTPException 으로 변환

from typing import Optional


class PlanError(Exception):
    """약속/점수 처리 실패의 공통 부모. status_code는 라우터의 HTTP 응답 코드."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PlanError):
    """잘못된 입력 (허용되지 않는 투표 값, 알 수 없는 outcome 등)."""

    status_code = 400


class NotFoundError(PlanError):
    """약속/프로필/그룹/참여자 없음."""

    status_code = 404


class ConflictError(PlanError):
    """허용되지 않는 상태 전이 (예: 완료된 약속 확정)."""

    status_code = 409


class PartialFailure(PlanError):
    """다건 처리 도중 중단. 재시도 가능 (이미 처리된 건은 멱등 키로 건너뜀)."""

    status_code = 500

    def __init__(self, message: str, processed: int = 0, total: int = 0):
        super().__init__(message)
        self.processed = processed
        self.total = total
