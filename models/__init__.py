"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (Platform, ETLStatus)
    customer: Customers deduplicated by hashed identity
    order: Orders, order items and products
    status: Status taxonomy, transition history and status semantics
    dimensions: Payment, shipping, geography and processing-date dimensions
    etl_run: ETL execution audit trail
    checkpoint: Per-platform watermarks

Database Schema:
    All models inherit from the Base declarative class. Surrogate keys come
    from PostgreSQL sequences declared next to the models that use them.

Usage:
    from models.order import Order
    from models.base import Platform, ETLStatus
"""

from models.base import Base, Platform, ETLStatus
from models.customer import Customer
from models.order import Order, OrderItem, Product
from models.status import Status, OrderStatus, OrderStatusDetail
from models.dimensions import PaymentInfo, ShippingInfo, GeographyInfo, ProcessingDateInfo
from models.etl_run import ETLRun
from models.checkpoint import ETLCheckpoint

__all__ = [
    "Base",
    "Platform",
    "ETLStatus",
    "Customer",
    "Order",
    "OrderItem",
    "Product",
    "Status",
    "OrderStatus",
    "OrderStatusDetail",
    "PaymentInfo",
    "ShippingInfo",
    "GeographyInfo",
    "ProcessingDateInfo",
    "ETLRun",
    "ETLCheckpoint",
]
