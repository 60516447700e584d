from sqlalchemy import (
    Column, String, Integer, DateTime, Enum, Boolean, Float, BigInteger,
    ForeignKey, Index, PrimaryKeyConstraint, Sequence, UniqueConstraint
)
from datetime import datetime
from models.base import Base, Platform

status_key_seq = Sequence("status_key_seq", metadata=Base.metadata)


class Status(Base):
    """
    Status taxonomy row: one per (platform, platform_status_code).

    Rows are created lazily the first time a platform code is observed.
    status_key is drawn from a database sequence, never from max(key) + 1.
    """
    __tablename__ = "statuses"

    status_key = Column(BigInteger, primary_key=True)
    platform = Column(Enum(Platform), nullable=False)
    platform_status_code = Column(String(50), nullable=False)
    platform_status_name = Column(String(120), nullable=True)
    standard_status_code = Column(String(50), nullable=False, index=True)
    status_category = Column(String(30), nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("platform", "platform_status_code", name="uq_status_platform_code"),
    )


class OrderStatus(Base):
    """Append-only status transition log."""
    __tablename__ = "order_status_history"

    status_key = Column(BigInteger, ForeignKey("statuses.status_key"), nullable=False)
    order_id = Column(String(120), ForeignKey("orders.order_id"), nullable=False)
    transition_timestamp = Column(DateTime, nullable=False)

    transition_date_key = Column(Integer, nullable=True)
    previous_status_key = Column(BigInteger, nullable=True)
    duration_in_previous_status_hours = Column(Float, nullable=True)
    transition_reason = Column(String(120), nullable=True)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("status_key", "order_id", "transition_timestamp"),
        Index("idx_status_history_order_ts", "order_id", "transition_timestamp"),
    )


class OrderStatusDetail(Base):
    """Status semantics for the order's current status."""
    __tablename__ = "order_status_details"

    order_id = Column(String(120), ForeignKey("orders.order_id"), primary_key=True)
    status_key = Column(BigInteger, ForeignKey("statuses.status_key"), nullable=False)
    standard_status_code = Column(String(50), nullable=False)

    is_active_order = Column(Boolean, nullable=False, default=True)
    is_completed_order = Column(Boolean, nullable=False, default=False)
    is_revenue_recognized = Column(Boolean, nullable=False, default=False)
    is_refundable = Column(Boolean, nullable=False, default=False)
    is_cancellable = Column(Boolean, nullable=False, default=False)
    is_trackable = Column(Boolean, nullable=False, default=False)
    requires_manual_action = Column(Boolean, nullable=False, default=False)

    next_possible_statuses = Column(String(200), nullable=True)
    auto_transition_hours = Column(Integer, nullable=True)
    status_color = Column(String(20), nullable=True)
    status_icon = Column(String(40), nullable=True)
    average_duration_hours = Column(Float, nullable=True)
    success_rate = Column(Float, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
