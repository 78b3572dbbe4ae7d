# 프로필 CRUD (점수/카운터는 services.commitment_ledger 에서만 변경)

from typing import Optional

from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models.profile import Profile


def create_profile(db: Session, full_name: str, push_token: Optional[str] = None) -> Profile:
    """⚠️ commit 하지 않음."""
    profile = Profile(full_name=full_name, push_token=push_token)
    db.add(profile)
    db.flush()
    return profile


def get_profile(db: Session, user_id: int) -> Profile:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


def set_push_token(db: Session, user_id: int, token: Optional[str]) -> Profile:
    profile = get_profile(db, user_id)
    profile.push_token = token
    return profile
