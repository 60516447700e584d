"""
Facebook (Pancake) shop platform adapter
"""

from datetime import date
from typing import Any, Dict, List, Optional

from core.exceptions import MappingError
from ingestion.base import FetchPage, PlatformAdapter
from ingestion.extractors.api_client import PlatformAPIClient
from ingestion.transformers.enrichment import (
    build_geography, build_payment, build_shipping, date_key, money,
    parse_datetime, parse_float, parse_int, processing_date,
)
from models.base import Platform
from schemas.normalized import CanonicalOrder, OrderRecord, StatusObservation

# Facebook reports status as an integer
STATUS_CODES = {
    1: "PENDING",
    2: "COMPLETED",
    3: "PROCESSING",
    9: "CANCELLED",
}


def status_code_name(value: Any) -> Optional[str]:
    """Integer status -> named code; unknown integers pass through as text."""
    if value in (None, ""):
        return None
    number = parse_int(value)
    if number is None:
        return str(value)
    return STATUS_CODES.get(number, str(number))


class FacebookAdapter(PlatformAdapter):
    """
    Facebook shop orders.

    Raw shape: top-level order_id, shop_id, integer status,
    created_at/updated_at and a ``data`` object with money totals, items,
    customer contact lists and shipping_address.
    """

    platform = Platform.FACEBOOK

    def __init__(self, client: PlatformAPIClient):
        self.client = client

    async def fetch_page(self, day: date, page: int, page_size: int) -> FetchPage:
        return await self.client.fetch(day, page, page_size)

    async def close(self) -> None:
        await self.client.close()

    def map_raw_to_canonical(self, raw: Dict[str, Any]) -> CanonicalOrder:
        platform_order_id = raw.get("order_id") or raw.get("id")
        order_id = self.qualify_order_id(platform_order_id)
        data: Dict[str, Any] = raw.get("data") or {}
        buyer: Dict[str, Any] = data.get("customer") or {}
        address: Dict[str, Any] = data.get("shipping_address") or {}

        raw_status = raw.get("status") if raw.get("status") is not None else data.get("status")
        status_code = status_code_name(raw_status)
        if not status_code:
            raise MappingError("Order has no status", context={"platform": self.name, "order_id": order_id})

        created_at = parse_datetime(raw.get("created_at") or data.get("inserted_at"))
        updated_at = parse_datetime(raw.get("updated_at") or data.get("updated_at")) or created_at
        if updated_at is None:
            raise MappingError("Order has no created_at/updated_at", context={"platform": self.name, "order_id": order_id})

        customer = self.build_customer(
            order_id,
            phone=address.get("phone") or self._first(buyer.get("phone_numbers")),
            email=self._first(buyer.get("emails")),
            platform_customer_id=buyer.get("fb_id") or buyer.get("id"),
        )

        items, products = self.build_lines([
            {
                "sku": self._sku(item),
                "product_id": str(item.get("product_id") or item.get("variation_id")),
                "name": item.get("product_name"),
                "quantity": parse_int(item.get("quantity")) or 1,
                "unit_price": money(item.get("price")),
                "total_price": money(item.get("total_amount")) or None,
                "image_url": item.get("image_url"),
            }
            for item in data.get("items") or []
            if item.get("product_id") is not None or item.get("variation_id") is not None
        ])

        is_cod = money(data.get("cod")) > 0
        shipping_fee = money(data.get("shipping_fee"))
        tax = money(data.get("tax"))
        gross = money(data.get("total"))

        order = OrderRecord(
            order_id=order_id,
            platform=self.platform,
            platform_order_id=str(platform_order_id),
            customer_id=customer.customer_id,
            shop_id=self.optional_str(raw.get("shop_id") or (data.get("page") or {}).get("id")),
            gross_revenue=gross,
            net_revenue=gross - shipping_fee - tax,
            shipping_fee=shipping_fee,
            tax_amount=tax,
            discount_amount=money(data.get("discount")),
            item_quantity=sum(item.quantity for item in items),
            is_cod=is_cod,
            date_key=date_key(created_at or updated_at),
            created_at=created_at,
            updated_at=updated_at,
        )

        return CanonicalOrder(
            customer=customer,
            order=order,
            items=items,
            products=products,
            payment=build_payment(data.get("payment_method") or ("COD" if is_cod else None), is_cod),
            shipping=build_shipping(data.get("shipping_provider"), shipping_fee, is_cod),
            geography=build_geography(
                address.get("province"),
                district=address.get("district"),
                ward=address.get("ward"),
                postal_code=address.get("postal_code"),
                country_code=address.get("country"),
                latitude=parse_float(address.get("latitude")),
                longitude=parse_float(address.get("longitude")),
            ),
            processing_date=processing_date(created_at or updated_at),
            status=StatusObservation(code=status_code, name=status_code, changed_at=updated_at),
        )

    @staticmethod
    def _sku(item: Dict[str, Any]) -> str:
        if item.get("variation_id") is not None:
            return f"FB_VAR_{item['variation_id']}"
        return f"FB_PROD_{item['product_id']}"

    @staticmethod
    def _first(values: Optional[List[Any]]) -> Optional[str]:
        for value in values or []:
            if value:
                return str(value)
        return None
