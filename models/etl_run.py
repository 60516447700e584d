from sqlalchemy import Column, BigInteger, String, Enum, DateTime, Float, Integer, Text, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from datetime import datetime
import uuid
from models.base import Base, Platform, ETLStatus


class ETLRun(Base):
    """
    Audit row for each platform pipeline run.

    Purpose:
    - Audit trail of all ETL runs
    - Per-order failure details for debugging
    """
    __tablename__ = "etl_runs"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    run_id = Column(UUID(as_uuid=True), default=uuid.uuid4, unique=True, nullable=False, index=True)

    platform = Column(Enum(Platform), nullable=False, index=True)
    status = Column(Enum(ETLStatus), default=ETLStatus.PENDING, nullable=False, index=True)

    # Fetch window
    window_start = Column(String(32), nullable=True)
    window_end = Column(String(32), nullable=True)

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    pages_fetched = Column(Integer, default=0)
    records_extracted = Column(Integer, default=0)
    records_loaded = Column(Integer, default=0)
    records_failed = Column(Integer, default=0)
    records_skipped = Column(Integer, default=0)

    # Error tracking
    error_message = Column(Text, nullable=True)
    error_details = Column(JSONB, nullable=True)

    checkpoint_before = Column(String(255), nullable=True)
    checkpoint_after = Column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_etl_run_platform_started", "platform", "started_at"),
        Index("idx_etl_run_status", "status", "started_at"),
    )
