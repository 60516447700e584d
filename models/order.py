from sqlalchemy import (
    Column, String, Integer, DateTime, Enum, Numeric, Boolean, Text,
    ForeignKey, Index, PrimaryKeyConstraint
)
from datetime import datetime
from models.base import Base, Platform


class Order(Base):
    """
    One row per platform order.

    order_id is platform-qualified (PLATFORM_<platform order id>). source_hash
    fingerprints the canonical payload so an unchanged re-pull is skipped.
    """
    __tablename__ = "orders"

    order_id = Column(String(120), primary_key=True)
    platform = Column(Enum(Platform), nullable=False, index=True)
    platform_order_id = Column(String(100), nullable=False)
    customer_id = Column(String(64), ForeignKey("customers.customer_id"), nullable=False, index=True)
    shop_id = Column(String(100), nullable=True, index=True)

    # Money
    gross_revenue = Column(Numeric(15, 2), nullable=False, default=0)
    net_revenue = Column(Numeric(15, 2), nullable=False, default=0)
    shipping_fee = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(15, 2), nullable=False, default=0)

    item_quantity = Column(Integer, nullable=False, default=0)
    is_cod = Column(Boolean, nullable=False, default=False)
    date_key = Column(Integer, nullable=True, index=True)

    source_hash = Column(String(64), nullable=False)

    created_at = Column(DateTime, nullable=True, index=True)
    updated_at = Column(DateTime, nullable=True)
    ingested_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_order_platform_updated", "platform", "updated_at"),
    )


class OrderItem(Base):
    """Line item of an order; the item set is replaced on re-ingestion."""
    __tablename__ = "order_items"

    order_id = Column(String(120), ForeignKey("orders.order_id"), nullable=False)
    item_sequence = Column(Integer, nullable=False)

    sku = Column(String(120), nullable=False)
    platform_product_id = Column(String(100), nullable=False)
    product_name = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    total_price = Column(Numeric(15, 2), nullable=False, default=0)
    original_price = Column(Numeric(15, 2), nullable=True)

    __table_args__ = (
        PrimaryKeyConstraint("order_id", "item_sequence"),
        Index("idx_order_item_sku", "sku"),
    )


class Product(Base):
    """Product keyed by (sku, platform_product_id); the same SKU may exist per platform."""
    __tablename__ = "products"

    sku = Column(String(120), nullable=False)
    platform_product_id = Column(String(100), nullable=False)
    platform = Column(Enum(Platform), nullable=False, index=True)

    product_name = Column(Text, nullable=True)
    price = Column(Numeric(15, 2), nullable=True)
    original_price = Column(Numeric(15, 2), nullable=True)
    price_range = Column(String(20), nullable=True)
    image_url = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("sku", "platform_product_id"),
    )
