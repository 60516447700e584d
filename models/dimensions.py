from sqlalchemy import (
    Column, String, Integer, DateTime, Boolean, Float, Numeric, BigInteger,
    ForeignKey, Sequence
)
from datetime import datetime
from models.base import Base

payment_key_seq = Sequence("payment_key_seq", metadata=Base.metadata)
shipping_key_seq = Sequence("shipping_key_seq", metadata=Base.metadata)
geography_key_seq = Sequence("geography_key_seq", metadata=Base.metadata)


# ============================================================================
# Per-order dimensions (one row per order, surrogate key kept across updates)
# ============================================================================

class PaymentInfo(Base):
    __tablename__ = "payment_info"

    payment_key = Column(BigInteger, payment_key_seq, server_default=payment_key_seq.next_value(), primary_key=True)
    order_id = Column(String(120), ForeignKey("orders.order_id"), nullable=False, unique=True)

    payment_method = Column(String(80), nullable=True)
    payment_category = Column(String(40), nullable=False)
    payment_provider = Column(String(40), nullable=False)
    is_cod = Column(Boolean, nullable=False, default=False)
    is_prepaid = Column(Boolean, nullable=False, default=False)
    is_installment = Column(Boolean, nullable=False, default=False)
    installment_months = Column(Integer, nullable=False, default=0)
    transaction_fee = Column(Numeric(15, 2), nullable=False, default=0)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class ShippingInfo(Base):
    __tablename__ = "shipping_info"

    shipping_key = Column(BigInteger, shipping_key_seq, server_default=shipping_key_seq.next_value(), primary_key=True)
    order_id = Column(String(120), ForeignKey("orders.order_id"), nullable=False, unique=True)

    provider_name = Column(String(120), nullable=True)
    provider_type = Column(String(40), nullable=False)
    service_type = Column(String(40), nullable=False)
    shipping_fee = Column(Numeric(15, 2), nullable=False, default=0)
    cod_fee = Column(Numeric(15, 2), nullable=False, default=0)
    weight_grams = Column(Integer, nullable=True)
    estimated_delivery_days = Column(Integer, nullable=True)
    is_express = Column(Boolean, nullable=False, default=False)
    is_free_shipping = Column(Boolean, nullable=False, default=False)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class GeographyInfo(Base):
    __tablename__ = "geography_info"

    geography_key = Column(BigInteger, geography_key_seq, server_default=geography_key_seq.next_value(), primary_key=True)
    order_id = Column(String(120), ForeignKey("orders.order_id"), nullable=False, unique=True)

    country_code = Column(String(4), nullable=False, default="VN")
    province_name = Column(String(120), nullable=True)
    district_name = Column(String(120), nullable=True)
    ward_name = Column(String(120), nullable=True)
    postal_code = Column(String(20), nullable=True)
    region_name = Column(String(40), nullable=True)
    is_urban = Column(Boolean, nullable=False, default=False)
    is_metropolitan = Column(Boolean, nullable=False, default=False)
    economic_tier = Column(String(20), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# Calendar dimension (one row per date)
# ============================================================================

class ProcessingDateInfo(Base):
    __tablename__ = "processing_date_info"

    date_key = Column(Integer, primary_key=True)  # YYYYMMDD
    full_date = Column(DateTime, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    day_name = Column(String(12), nullable=False)
    week_of_year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    quarter = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    is_weekend = Column(Boolean, nullable=False)
    is_shopping_season = Column(Boolean, nullable=False)
