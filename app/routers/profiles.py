# 프로필/점수 API
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.crud.profile_crud import create_profile, get_profile, set_push_token
from app.database import get_db
from app.errors import PlanError
from app.schemas.profile import (
    BonusOut,
    HistoryItemOut,
    LedgerEntryOut,
    ProfileCreate,
    ProfileOut,
    PushTokenBody,
)
from app.services.commitment_ledger import award_consistency_bonus, get_commitment_history, get_ledger_entries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.post("", response_model=ProfileOut)
def post_profile(body: ProfileCreate, db: Session = Depends(get_db)) -> ProfileOut:
    """프로필 생성 (점수 100, 카운터 0으로 시작)."""
    profile = create_profile(db, body.full_name, body.push_token)
    db.commit()
    db.refresh(profile)
    return ProfileOut.model_validate(profile)


@router.get("/{user_id}", response_model=ProfileOut)
def read_profile(user_id: int, db: Session = Depends(get_db)) -> ProfileOut:
    try:
        return ProfileOut.model_validate(get_profile(db, user_id))
    except PlanError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{user_id}/push-token", response_model=ProfileOut)
def put_push_token(user_id: int, body: PushTokenBody, db: Session = Depends(get_db)) -> ProfileOut:
    """디바이스 푸시 토큰 등록/해제 (null이면 해제)."""
    try:
        profile = set_push_token(db, user_id, body.push_token)
        db.commit()
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    db.refresh(profile)
    return ProfileOut.model_validate(profile)


@router.get("/{user_id}/history", response_model=List[HistoryItemOut])
def read_history(
    user_id: int,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> List[HistoryItemOut]:
    """최근 참여 기록 (최신순)."""
    try:
        get_profile(db, user_id)
    except PlanError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return [HistoryItemOut(**item) for item in get_commitment_history(db, user_id, limit)]


@router.get("/{user_id}/ledger", response_model=List[LedgerEntryOut])
def read_ledger(
    user_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> List[LedgerEntryOut]:
    """점수 변경 내역 (최신순)."""
    try:
        get_profile(db, user_id)
    except PlanError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return [LedgerEntryOut.model_validate(entry) for entry in get_ledger_entries(db, user_id, limit)]


@router.post("/{user_id}/consistency-bonus", response_model=BonusOut)
def post_consistency_bonus(user_id: int, db: Session = Depends(get_db)) -> BonusOut:
    """최근 확정 참여 5건 연속 체크인이면 +5. 같은 구간에는 한 번만."""
    try:
        get_profile(db, user_id)
        bonus = award_consistency_bonus(db, user_id)
        db.commit()
    except PlanError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        db.rollback()
        logger.exception("consistency bonus for user %s failed", user_id)
        raise HTTPException(status_code=500, detail="Failed to award bonus")
    return BonusOut(bonus=bonus, commitment_score=get_profile(db, user_id).commitment_score)
