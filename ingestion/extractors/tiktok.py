"""
TikTok Shop platform adapter
"""

from datetime import date
from typing import Any, Dict, List, Optional

from core.exceptions import MappingError
from ingestion.base import FetchPage, PlatformAdapter
from ingestion.extractors.api_client import PlatformAPIClient
from ingestion.transformers.enrichment import (
    build_geography, build_payment, build_shipping, date_key, money,
    parse_datetime, processing_date,
)
from models.base import Platform
from schemas.normalized import CanonicalOrder, OrderRecord, StatusObservation

# district_info levels: L0 country, L1 province, L2 district, L3 ward
_LEVELS = {
    "L0": "country",
    "L1": "province",
    "L2": "district",
    "L3": "ward",
}
_LEVEL_NAMES = (
    ("country", "country"),
    ("province", "province"),
    ("city", "province"),
    ("district", "district"),
    ("ward", "ward"),
)


class TikTokAdapter(PlatformAdapter):
    """
    TikTok Shop orders.

    Raw shape: top-level order_id, shop_id, status, create_time/update_time
    and a ``data`` object with payment totals, line_items (one entry per
    unit sold) and recipient_address with a district_info hierarchy.
    """

    platform = Platform.TIKTOK

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
        payment: Dict[str, Any] = data.get("payment") or {}
        address: Dict[str, Any] = data.get("recipient_address") or {}

        status_code = raw.get("status") or data.get("status")
        if not status_code:
            raise MappingError("Order has no status", context={"platform": self.name, "order_id": order_id})

        created_at = parse_datetime(raw.get("create_time") or data.get("create_time"))
        updated_at = parse_datetime(raw.get("update_time") or data.get("update_time")) or created_at
        if updated_at is None:
            raise MappingError("Order has no create_time/update_time", context={"platform": self.name, "order_id": order_id})

        customer = self.build_customer(
            order_id,
            phone=address.get("phone_number"),
            email=data.get("buyer_email"),
            platform_customer_id=data.get("user_id"),
        )

        items, products = self.build_lines(self._group_line_items(data.get("line_items") or []))

        is_cod = bool(data.get("is_cod"))
        shipping_fee = money(payment.get("shipping_fee"))
        tax = money(payment.get("tax"))
        discount = money(payment.get("seller_discount")) + money(payment.get("platform_discount"))
        gross = money(payment.get("total_amount"))
        sub_total = payment.get("sub_total")

        order = OrderRecord(
            order_id=order_id,
            platform=self.platform,
            platform_order_id=str(platform_order_id),
            customer_id=customer.customer_id,
            shop_id=self.optional_str(raw.get("shop_id")),
            gross_revenue=gross,
            net_revenue=money(sub_total) if sub_total is not None else gross - shipping_fee - tax,
            shipping_fee=shipping_fee,
            tax_amount=tax,
            discount_amount=discount,
            item_quantity=sum(item.quantity for item in items),
            is_cod=is_cod,
            date_key=date_key(created_at or updated_at),
            created_at=created_at,
            updated_at=updated_at,
        )

        region = self._address_levels(address.get("district_info") or [])
        return CanonicalOrder(
            customer=customer,
            order=order,
            items=items,
            products=products,
            payment=build_payment(data.get("payment_method_name"), is_cod),
            shipping=build_shipping(
                data.get("shipping_provider") or data.get("delivery_option_name"),
                shipping_fee,
                is_cod,
            ),
            geography=build_geography(
                region.get("province"),
                district=region.get("district"),
                ward=region.get("ward"),
                postal_code=address.get("postal_code"),
                country_code=address.get("region_code"),
            ),
            processing_date=processing_date(created_at or updated_at),
            status=StatusObservation(code=status_code, name=status_code, changed_at=updated_at),
        )

    @staticmethod
    def _group_line_items(line_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """TikTok lists one line per unit; collapse them per SKU."""
        grouped: Dict[str, Dict[str, Any]] = {}
        for line in line_items:
            product_id = line.get("product_id")
            if product_id is None:
                continue
            sku = line.get("seller_sku") or line.get("sku_id") or f"TT_{product_id}"
            entry = grouped.get(sku)
            if entry is None:
                grouped[sku] = {
                    "sku": str(sku),
                    "product_id": str(product_id),
                    "name": line.get("product_name"),
                    "quantity": 1,
                    "unit_price": money(line.get("sale_price")),
                    "original_price": money(line.get("original_price")) or None,
                    "image_url": line.get("sku_image"),
                }
            else:
                entry["quantity"] += 1
        return list(grouped.values())

    @staticmethod
    def _address_levels(district_info: List[Dict[str, Any]]) -> Dict[str, Optional[str]]:
        levels: Dict[str, Optional[str]] = {}
        for entry in district_info:
            level = _LEVELS.get(str(entry.get("address_level") or "").upper())
            if level is None:
                level_name = str(entry.get("address_level_name") or "").lower()
                level = next((value for needle, value in _LEVEL_NAMES if needle in level_name), None)
            if level and level not in levels:
                levels[level] = entry.get("address_name")
        return levels
