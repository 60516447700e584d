"""
Shopee platform adapter
"""

from datetime import date
from typing import Any, Dict

from core.exceptions import MappingError
from ingestion.base import FetchPage, PlatformAdapter
from ingestion.extractors.api_client import PlatformAPIClient
from ingestion.transformers.enrichment import (
    build_geography, build_payment, build_shipping, date_key, money,
    parse_datetime, parse_int, processing_date,
)
from models.base import Platform
from schemas.normalized import CanonicalOrder, OrderRecord, StatusObservation


class ShopeeAdapter(PlatformAdapter):
    """
    Shopee orders.

    Raw shape: top-level order_id, shop_id, order_status, total_amount,
    create_time/update_time (unix seconds) and a ``data`` object with
    payment, shipping, item_list and recipient_address.
    """

    platform = Platform.SHOPEE

    def __init__(self, client: PlatformAPIClient):
        self.client = client

    async def fetch_page(self, day: date, page: int, page_size: int) -> FetchPage:
        return await self.client.fetch(day, page, page_size)

    async def close(self) -> None:
        await self.client.close()

    def map_raw_to_canonical(self, raw: Dict[str, Any]) -> CanonicalOrder:
        platform_order_id = raw.get("order_id")
        order_id = self.qualify_order_id(platform_order_id)
        data: Dict[str, Any] = raw.get("data") or {}
        address: Dict[str, Any] = data.get("recipient_address") or {}

        status_code = raw.get("order_status") or data.get("order_status")
        if not status_code:
            raise MappingError("Order has no order_status", context={"platform": self.name, "order_id": order_id})

        created_at = parse_datetime(raw.get("create_time"))
        updated_at = parse_datetime(raw.get("update_time")) or created_at
        if updated_at is None:
            raise MappingError("Order has no create_time/update_time", context={"platform": self.name, "order_id": order_id})

        customer = self.build_customer(
            order_id,
            phone=address.get("phone"),
            email=data.get("buyer_email"),
            platform_customer_id=data.get("buyer_user_id"),
        )

        items, products = self.build_lines([
            {
                "sku": item.get("model_sku") or f"SKU_{item.get('item_id')}",
                "product_id": str(item.get("item_id")),
                "name": item.get("item_name"),
                "quantity": parse_int(item.get("model_quantity_purchased")) or 1,
                "unit_price": money(item.get("model_discounted_price")),
                "original_price": money(item.get("model_original_price")) or None,
                "image_url": (item.get("image_info") or {}).get("image_url"),
            }
            for item in data.get("item_list") or []
            if item.get("item_id") is not None
        ])

        is_cod = bool(data.get("cod"))
        shipping_fee = money(data.get("actual_shipping_fee")) or money(data.get("estimated_shipping_fee"))
        gross = money(raw.get("total_amount") if raw.get("total_amount") is not None else data.get("total_amount"))

        order = OrderRecord(
            order_id=order_id,
            platform=self.platform,
            platform_order_id=str(platform_order_id),
            customer_id=customer.customer_id,
            shop_id=self.optional_str(raw.get("shop_id")),
            gross_revenue=gross,
            net_revenue=gross - shipping_fee,
            shipping_fee=shipping_fee,
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
            payment=build_payment(data.get("payment_method"), is_cod),
            shipping=build_shipping(
                data.get("shipping_carrier"),
                shipping_fee,
                is_cod,
                days_to_ship=parse_int(data.get("days_to_ship")),
                weight_grams=parse_int(data.get("order_chargeable_weight_gram")),
            ),
            geography=build_geography(
                address.get("state") or address.get("city"),
                district=address.get("district"),
                ward=address.get("town"),
                postal_code=address.get("zipcode"),
                country_code=address.get("region"),
            ),
            processing_date=processing_date(created_at or updated_at),
            status=StatusObservation(code=status_code, name=status_code, changed_at=updated_at),
        )
