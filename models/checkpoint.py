from sqlalchemy import Column, Integer, String, Enum, DateTime, Text, Index, BigInteger
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
from models.base import Base, Platform, ETLStatus


class ETLCheckpoint(Base):
    """
    Tracks incremental ingestion state per platform.

    Purpose:
    - Pull only orders updated since the last successful run
    - Track run counters for health reporting

    Design:
    - One row per platform
    - checkpoint_value stores the watermark as an ISO timestamp
    """
    __tablename__ = "etl_checkpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)

    platform = Column(Enum(Platform), nullable=False)

    # Watermark
    checkpoint_type = Column(String(50), nullable=False, default="timestamp")
    checkpoint_value = Column(String(255), nullable=True)
    checkpoint_data = Column(JSONB, nullable=True)

    # Statistics
    last_run_at = Column(DateTime, nullable=True, index=True)
    last_success_at = Column(DateTime, nullable=True)
    last_failure_at = Column(DateTime, nullable=True)

    total_runs = Column(Integer, default=0)
    total_records_processed = Column(BigInteger, default=0)
    last_records_processed = Column(Integer, default=0)

    # Status
    status = Column(Enum(ETLStatus), default=ETLStatus.PENDING, nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_checkpoint_platform", "platform", unique=True),
    )
