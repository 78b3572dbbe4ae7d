# Profile 모델: 사용자별 약속 점수와 출석 카운터

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.models.base import Base

SCORE_MIN = 0
SCORE_MAX = 100
SCORE_DEFAULT = 100


class Profile(Base):
    """프로필 테이블. commitment_score/total_* 는 services.commitment_ledger 만 수정."""

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False)
    commitment_score = Column(Integer, nullable=False, default=SCORE_DEFAULT, server_default=str(SCORE_DEFAULT))
    total_attended = Column(Integer, nullable=False, default=0, server_default="0")
    total_flaked = Column(Integer, nullable=False, default=0, server_default="0")
    push_token = Column(String(200), nullable=True)  # Expo push token
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (CheckConstraint("commitment_score BETWEEN 0 AND 100", name="ck_profiles_score_range"),)
