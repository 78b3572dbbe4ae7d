# CommitmentLedgerEntry 모델: 적용된 점수 변경 기록 (멱등 키 포함)

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from app.models.base import Base


class CommitmentLedgerEntry(Base):
    """
    점수 변경 1건 = 1행.
    idempotency_key(unique)가 있으면 같은 (plan, user)에 대한 재적용을 막음.
    """

    __tablename__ = "commitment_ledger"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)
    outcome = Column(String(30), nullable=False)
    change = Column(Integer, nullable=False)
    previous_score = Column(Integer, nullable=False)
    new_score = Column(Integer, nullable=False)
    idempotency_key = Column(String(120), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
