"""
Abstract base class for platform adapters
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
import hashlib
import json
import logging

from core.exceptions import MappingError
from core.security import generate_customer_id, hash_email, hash_phone
from ingestion.transformers.enrichment import price_range
from models.base import Platform
from schemas.normalized import CanonicalOrder, CustomerRecord, OrderItemRecord, ProductRecord

logger = logging.getLogger(__name__)


@dataclass
class FetchPage:
    """One page of raw orders returned by a platform API"""
    orders: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    total_count: Optional[int] = None
    page: int = 1


class PlatformAdapter(ABC):
    """
    Capability interface the generic pipeline needs from a platform.

    Responsibilities:
    - Pull one page of updated orders for a date
    - Map a raw order onto canonical entities
    """

    platform: Platform

    @abstractmethod
    async def fetch_page(self, day: date, page: int, page_size: int) -> FetchPage:
        """
        Fetch one page of orders updated on ``day``.

        Raises:
            APIExtractionError: the page could not be fetched or parsed
        """
        pass

    @abstractmethod
    def map_raw_to_canonical(self, raw: Dict[str, Any]) -> CanonicalOrder:
        """
        Map a raw order record.

        Raises:
            MappingError / pydantic.ValidationError: the record is unusable
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the adapter"""
        return None

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.platform.value

    def extract_order_id(self, raw: Dict[str, Any]) -> str:
        """Platform order id, used for failure reporting before mapping"""
        if not isinstance(raw, dict):
            return "<invalid>"
        value = raw.get("order_id") or raw.get("id")
        return str(value) if value not in (None, "") else "<missing>"

    @staticmethod
    def optional_str(value: Any) -> Optional[str]:
        return str(value) if value not in (None, "") else None

    def qualify_order_id(self, platform_order_id: Any) -> str:
        if platform_order_id in (None, ""):
            raise MappingError(
                "Order has no order_id",
                context={"platform": self.name}
            )
        return f"{self.name}_{platform_order_id}"

    def build_customer(
        self,
        order_id: str,
        phone: Optional[str],
        email: Optional[str] = None,
        platform_customer_id: Optional[str] = None
    ) -> CustomerRecord:
        """
        Resolve the customer identity for an order.

        The customer id is derived from the phone hash, then the email hash,
        then the platform's own customer id.
        """
        phone_hash = hash_phone(phone) if phone else None
        email_hash = hash_email(email) if email else None

        if phone_hash:
            customer_id = generate_customer_id(self.name, phone_hash)
        elif email_hash:
            customer_id = generate_customer_id(self.name, email_hash)
        elif platform_customer_id:
            customer_id = f"{self.name}_{platform_customer_id}"[:64]
        else:
            raise MappingError(
                "Order has no customer identity (phone, email or customer id)",
                context={"platform": self.name, "order_id": order_id}
            )

        return CustomerRecord(
            customer_id=customer_id,
            platform=self.platform,
            platform_customer_id=str(platform_customer_id) if platform_customer_id else None,
            phone_hash=phone_hash,
            email_hash=email_hash,
        )

    def build_lines(
        self,
        lines: List[Dict[str, Any]]
    ) -> Tuple[List[OrderItemRecord], List[ProductRecord]]:
        """
        Turn normalized line dicts (sku, product_id, name, quantity,
        unit_price, original_price, image_url) into items numbered 1..n and
        the distinct products they reference.
        """
        items: List[OrderItemRecord] = []
        products: Dict[Tuple[str, str], ProductRecord] = {}

        for sequence, line in enumerate(lines, start=1):
            quantity = line.get("quantity") or 1
            unit_price = line.get("unit_price") or 0.0
            items.append(OrderItemRecord(
                item_sequence=sequence,
                sku=line["sku"],
                platform_product_id=line["product_id"],
                product_name=line.get("name"),
                quantity=quantity,
                unit_price=unit_price,
                total_price=line.get("total_price") or unit_price * quantity,
                original_price=line.get("original_price"),
            ))
            products[(line["sku"], line["product_id"])] = ProductRecord(
                sku=line["sku"],
                platform_product_id=line["product_id"],
                platform=self.platform,
                product_name=line.get("name"),
                price=unit_price,
                original_price=line.get("original_price"),
                price_range=price_range(unit_price),
                image_url=line.get("image_url"),
            )

        return items, list(products.values())


def fingerprint(canonical: CanonicalOrder) -> str:
    """SHA-256 of the canonical payload; equal fingerprints mean nothing changed."""
    payload = canonical.model_dump(mode="json")
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
