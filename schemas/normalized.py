"""
Pydantic schemas for canonical order entities with validation.

Platform adapters map raw API records onto these models; the pipeline upserts
them through the entity store. Field names match the ORM columns so
``model_dump()`` can be written directly.
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from models.base import Platform


class CustomerRecord(BaseModel):
    """Customer identity for one order. Holds hashes only."""
    customer_id: str = Field(..., min_length=1, max_length=64)
    platform: Platform
    platform_customer_id: Optional[str] = None
    phone_hash: Optional[str] = Field(None, min_length=64, max_length=64)
    email_hash: Optional[str] = Field(None, min_length=64, max_length=64)


class OrderRecord(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=120)
    platform: Platform
    platform_order_id: str = Field(..., min_length=1)
    customer_id: str
    shop_id: Optional[str] = None

    gross_revenue: float = Field(0.0, ge=0)
    net_revenue: float = 0.0
    shipping_fee: float = Field(0.0, ge=0)
    tax_amount: float = Field(0.0, ge=0)
    discount_amount: float = Field(0.0, ge=0)

    item_quantity: int = Field(0, ge=0)
    is_cod: bool = False
    date_key: Optional[int] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderItemRecord(BaseModel):
    item_sequence: int = Field(..., ge=1)
    sku: str = Field(..., min_length=1, max_length=120)
    platform_product_id: str = Field(..., min_length=1)
    product_name: Optional[str] = None
    quantity: int = Field(1, ge=0)
    unit_price: float = Field(0.0, ge=0)
    total_price: float = Field(0.0, ge=0)
    original_price: Optional[float] = None


class ProductRecord(BaseModel):
    sku: str = Field(..., min_length=1, max_length=120)
    platform_product_id: str = Field(..., min_length=1)
    platform: Platform
    product_name: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    price_range: Optional[str] = None
    image_url: Optional[str] = None


class PaymentRecord(BaseModel):
    payment_method: Optional[str] = None
    payment_category: str
    payment_provider: str
    is_cod: bool = False
    is_prepaid: bool = False
    is_installment: bool = False
    installment_months: int = 0
    transaction_fee: float = 0.0


class ShippingRecord(BaseModel):
    provider_name: Optional[str] = None
    provider_type: str
    service_type: str
    shipping_fee: float = 0.0
    cod_fee: float = 0.0
    weight_grams: Optional[int] = None
    estimated_delivery_days: Optional[int] = None
    is_express: bool = False
    is_free_shipping: bool = False


class GeographyRecord(BaseModel):
    country_code: str = "VN"
    province_name: Optional[str] = None
    district_name: Optional[str] = None
    ward_name: Optional[str] = None
    postal_code: Optional[str] = None
    region_name: Optional[str] = None
    is_urban: bool = False
    is_metropolitan: bool = False
    economic_tier: str = "TIER_3"
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ProcessingDateRecord(BaseModel):
    date_key: int
    full_date: datetime
    day_of_week: int
    day_name: str
    week_of_year: int
    month: int
    quarter: int
    year: int
    is_weekend: bool
    is_shopping_season: bool


class StatusObservation(BaseModel):
    """Platform status as seen on the raw order."""
    code: str = Field(..., min_length=1)
    name: Optional[str] = None
    changed_at: datetime

    @validator("code", pre=True)
    def clean_code(cls, v):
        """Status codes are compared upper-cased and trimmed"""
        if v is None:
            raise ValueError("Status code is required")
        v = str(v).strip().upper()
        if not v:
            raise ValueError("Status code cannot be empty")
        return v


class CanonicalOrder(BaseModel):
    """Everything the pipeline writes for one raw order."""
    customer: CustomerRecord
    order: OrderRecord
    items: List[OrderItemRecord] = Field(default_factory=list)
    products: List[ProductRecord] = Field(default_factory=list)
    payment: PaymentRecord
    shipping: ShippingRecord
    geography: GeographyRecord
    processing_date: Optional[ProcessingDateRecord] = None
    status: StatusObservation

    @property
    def order_id(self) -> str:
        return self.order.order_id

    @validator("items")
    def check_sequences(cls, v):
        """Item sequences must be unique within an order"""
        sequences = [item.item_sequence for item in v]
        if len(sequences) != len(set(sequences)):
            raise ValueError("Duplicate item_sequence in order items")
        return v
