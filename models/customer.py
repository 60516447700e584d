from sqlalchemy import Column, String, Integer, DateTime, Enum, Numeric, BigInteger, Sequence, Index
from datetime import datetime
from models.base import Base, Platform

customer_key_seq = Sequence("customer_key_seq", metadata=Base.metadata)


class Customer(Base):
    """
    Customer deduplicated by hashed identity.

    customer_id is derived from platform + phone hash, so the same buyer pulled
    repeatedly from one platform always resolves to the same row. Only hashes
    of phone and email are stored.
    """
    __tablename__ = "customers"

    customer_id = Column(String(64), primary_key=True)
    customer_key = Column(
        BigInteger,
        customer_key_seq,
        server_default=customer_key_seq.next_value(),
        unique=True,
        nullable=False,
    )

    platform = Column(Enum(Platform), nullable=False, index=True)
    platform_customer_id = Column(String(100), nullable=True)

    phone_hash = Column(String(64), nullable=True, index=True)
    email_hash = Column(String(64), nullable=True, index=True)

    # Aggregates, only advanced when an order is seen for the first time
    total_orders = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(15, 2), nullable=False, default=0)
    first_order_date = Column(DateTime, nullable=True)
    last_order_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_customer_platform_phone", "platform", "phone_hash"),
    )
