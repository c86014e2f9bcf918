"""Posture snapshot history table."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped

from recoverability.core.database import Base


class PostureSnapshotRecord(Base):
    """One persisted assessment run per row; rows are never updated."""

    __tablename__ = "posture_snapshots"
    __table_args__ = (
        Index("idx_posture_snapshots_org_created", "organization", "created_at"),
    )

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = Column(String(36), nullable=False, unique=True)
    organization: Mapped[str] = Column(String(255), nullable=False)
    created_at: Mapped[datetime] = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    compliance_score: Mapped[float] = Column(Float, default=0.0)
    grade: Mapped[str] = Column(String(2), nullable=False)
    pass_rate: Mapped[float] = Column(Float, default=0.0)
    total_vms: Mapped[int] = Column(Integer, default=0)
    finding_count: Mapped[int] = Column(Integer, default=0)
    payload: Mapped[str] = Column(Text, nullable=False)  # PostureSnapshot JSON

    def __repr__(self) -> str:
        return f"<PostureSnapshotRecord {self.organization} {self.created_at}: {self.compliance_score:.1f}>"
