# ============================================================================
# File: ingestion/transformers/status_canonicalizer.py
# Description: Maps platform status codes onto the standard status taxonomy
# ============================================================================
"""
Status canonicalization.

Every platform reports order status in its own vocabulary. The taxonomy table
holds one row per (platform, platform status code), each pointing at a
standard status code. Rows are created the first time a code is observed:

    1. Look up (platform, code) in the store
    2. If absent, allocate a key from the status sequence and insert the row
       with ON CONFLICT DO NOTHING, then re-read it
    3. Whoever wins the insert, every caller gets the same status_key

Codes missing from the static tables are stored with the UNKNOWN standard
code rather than rejected.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import asyncio
import logging

from ingestion.loaders.base import EntityStore
from models.base import Platform

logger = logging.getLogger(__name__)

UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class StandardStatus:
    code: str
    category: str


# ============================================================================
# Static mapping tables: platform code -> (standard code, category)
# ============================================================================

STATUS_MAPPINGS: Dict[Platform, Dict[str, StandardStatus]] = {
    Platform.SHOPEE: {
        "UNPAID": StandardStatus("UNPAID", "PENDING"),
        "TO_PROCESS": StandardStatus("PROCESSING", "PROCESSING"),
        "PROCESSED": StandardStatus("PROCESSED", "PROCESSING"),
        "TO_SHIP": StandardStatus("READY_TO_SHIP", "PROCESSING"),
        "SHIPPED": StandardStatus("SHIPPING", "PROCESSING"),
        "TO_RECEIVE": StandardStatus("SHIPPED", "PROCESSING"),
        "COMPLETED": StandardStatus("COMPLETED", "FINAL"),
        "CANCELLED": StandardStatus("CANCELLED", "FINAL"),
        "IN_CANCEL": StandardStatus("CANCELLING", "PROCESSING"),
        "RETURNED": StandardStatus("RETURNED", "FINAL"),
    },
    Platform.TIKTOK: {
        "DELIVERED": StandardStatus("COMPLETED", "FINAL"),
        "COMPLETED": StandardStatus("COMPLETED", "FINAL"),
        "CANCELLED": StandardStatus("CANCELLED", "FINAL"),
        "CANCELED": StandardStatus("CANCELLED", "FINAL"),
        "AWAITING_SHIPMENT": StandardStatus("READY_TO_SHIP", "PROCESSING"),
        "READY_TO_SHIP": StandardStatus("READY_TO_SHIP", "PROCESSING"),
        "IN_TRANSIT": StandardStatus("SHIPPING", "PROCESSING"),
        "SHIPPED": StandardStatus("SHIPPING", "PROCESSING"),
        "SHIPPING": StandardStatus("SHIPPING", "PROCESSING"),
        "AWAITING_PAYMENT": StandardStatus("UNPAID", "PENDING"),
        "PENDING": StandardStatus("UNPAID", "PENDING"),
        "PROCESSING": StandardStatus("PROCESSING", "PROCESSING"),
        "CONFIRMED": StandardStatus("CONFIRMED", "PROCESSING"),
        "RETURNED": StandardStatus("RETURNED", "FINAL"),
    },
    Platform.FACEBOOK: {
        "PENDING": StandardStatus("PENDING", "PENDING"),
        "CONFIRMED": StandardStatus("CONFIRMED", "PROCESSING"),
        "PROCESSING": StandardStatus("PROCESSING", "PROCESSING"),
        "SHIPPED": StandardStatus("SHIPPING", "PROCESSING"),
        "DELIVERED": StandardStatus("COMPLETED", "FINAL"),
        "COMPLETED": StandardStatus("COMPLETED", "FINAL"),
        "CANCELLED": StandardStatus("CANCELLED", "FINAL"),
        "RETURNED": StandardStatus("RETURNED", "FINAL"),
    },
}


def standard_status_for(platform: Platform, code: str) -> StandardStatus:
    """Default taxonomy entry for a platform code; UNKNOWN when unmapped."""
    table = STATUS_MAPPINGS.get(Platform(platform), {})
    return table.get(code.strip().upper(), StandardStatus(UNKNOWN, UNKNOWN))


# ============================================================================
# Status semantics for OrderStatusDetail
# ============================================================================

_FINAL = {"COMPLETED", "CANCELLED", "RETURNED"}

_NEXT_STATUSES = {
    "PENDING": "CONFIRMED,CANCELLED",
    "UNPAID": "PROCESSING,CANCELLED",
    "PROCESSING": "PROCESSED,READY_TO_SHIP,CANCELLED",
    "PROCESSED": "READY_TO_SHIP,CANCELLED",
    "CONFIRMED": "READY_TO_SHIP,CANCELLED",
    "READY_TO_SHIP": "SHIPPING,CANCELLING",
    "SHIPPING": "SHIPPED,RETURNED",
    "SHIPPED": "COMPLETED,RETURNED",
    "CANCELLING": "CANCELLED",
    "COMPLETED": "RETURNED",
}

_AUTO_TRANSITION_HOURS = {
    "UNPAID": 24,
    "PENDING": 24,
    "PROCESSING": 48,
    "READY_TO_SHIP": 72,
    "SHIPPED": 168,
}

_PRESENTATION = {
    "PENDING": ("#FFA500", "clock"),
    "UNPAID": ("#FFA500", "credit-card"),
    "PROCESSING": ("#1E90FF", "cog"),
    "PROCESSED": ("#1E90FF", "check"),
    "CONFIRMED": ("#1E90FF", "check"),
    "READY_TO_SHIP": ("#6A5ACD", "box"),
    "SHIPPING": ("#6A5ACD", "truck"),
    "SHIPPED": ("#6A5ACD", "truck"),
    "COMPLETED": ("#2E8B57", "check-circle"),
    "CANCELLING": ("#DC143C", "hourglass"),
    "CANCELLED": ("#DC143C", "times-circle"),
    "RETURNED": ("#8B0000", "undo"),
}

_AVERAGE_DURATION_HOURS = {
    "PENDING": 2.0,
    "UNPAID": 12.0,
    "PROCESSING": 24.0,
    "PROCESSED": 12.0,
    "CONFIRMED": 12.0,
    "READY_TO_SHIP": 24.0,
    "SHIPPING": 48.0,
    "SHIPPED": 72.0,
    "CANCELLING": 24.0,
}

_SUCCESS_RATE = {
    "PENDING": 0.85,
    "UNPAID": 0.80,
    "PROCESSING": 0.95,
    "PROCESSED": 0.96,
    "CONFIRMED": 0.95,
    "READY_TO_SHIP": 0.97,
    "SHIPPING": 0.98,
    "SHIPPED": 0.99,
    "COMPLETED": 1.0,
    "CANCELLING": 0.1,
    "CANCELLED": 0.0,
    "RETURNED": 0.0,
}


def describe_status(standard_code: str) -> Dict[str, object]:
    """OrderStatusDetail columns derived from a standard status code."""
    code = (standard_code or UNKNOWN).upper()
    color, icon = _PRESENTATION.get(code, ("#808080", "question"))
    return {
        "standard_status_code": code,
        "is_active_order": code not in _FINAL,
        "is_completed_order": code == "COMPLETED",
        "is_revenue_recognized": code == "COMPLETED",
        "is_refundable": code in ("COMPLETED", "SHIPPED"),
        "is_cancellable": code in ("PENDING", "UNPAID", "PROCESSING", "PROCESSED", "CONFIRMED"),
        "is_trackable": code in ("SHIPPING", "SHIPPED"),
        "requires_manual_action": code in ("PROCESSING", "CANCELLING"),
        "next_possible_statuses": _NEXT_STATUSES.get(code),
        "auto_transition_hours": _AUTO_TRANSITION_HOURS.get(code),
        "status_color": color,
        "status_icon": icon,
        "average_duration_hours": _AVERAGE_DURATION_HOURS.get(code),
        "success_rate": _SUCCESS_RATE.get(code),
    }


# ============================================================================
# Canonicalizer
# ============================================================================

class StatusCanonicalizer:
    """
    Resolve (platform, platform status code) to a taxonomy status_key.

    One instance is used per pipeline. Resolved keys are cached; the cache is
    only an optimization, the store's unique index is what keeps one row per
    pair under concurrent pipelines.
    """

    def __init__(self, store: EntityStore):
        self.store = store
        self._cache: Dict[Tuple[str, str], Dict[str, object]] = {}
        self._lock = asyncio.Lock()

    async def resolve(
        self,
        platform: Platform,
        platform_status_code: str,
        platform_status_name: Optional[str] = None
    ) -> int:
        row = await self.resolve_row(platform, platform_status_code, platform_status_name)
        return int(row["status_key"])

    async def resolve_row(
        self,
        platform: Platform,
        platform_status_code: str,
        platform_status_name: Optional[str] = None
    ) -> Dict[str, object]:
        """Like resolve() but returns the whole taxonomy row."""
        platform = Platform(platform)
        code = str(platform_status_code).strip().upper()
        if not code:
            raise ValueError("platform_status_code must not be empty")

        cache_key = (platform.value, code)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        async with self._lock:
            key = {"platform": platform, "platform_status_code": code}
            row = await self.store.find_by_key("status", key)

            if row is None:
                standard = standard_status_for(platform, code)
                status_key = await self.store.next_surrogate_key("status")
                row = await self.store.insert_if_absent("status", {
                    "status_key": status_key,
                    "platform": platform,
                    "platform_status_code": code,
                    "platform_status_name": platform_status_name or code,
                    "standard_status_code": standard.code,
                    "status_category": standard.category,
                })
                if row["status_key"] == status_key:
                    logger.info(
                        f"New status mapping {platform.value}/{code} -> "
                        f"{standard.code} (key={status_key})"
                    )
                if standard.code == UNKNOWN:
                    logger.warning(f"Unmapped status code {platform.value}/{code}, stored as {UNKNOWN}")

            self._cache[cache_key] = row
            return row

    def forget(self) -> None:
        """Drop cached rows, e.g. after a rolled-back unit of work."""
        self._cache.clear()

    async def seed(self, platforms: Optional[List[Platform]] = None) -> int:
        """
        Pre-populate the taxonomy with every static mapping.

        Idempotent; returns the number of rows that did not exist before.
        """
        created = 0
        for platform in platforms or list(STATUS_MAPPINGS):
            for code in STATUS_MAPPINGS[Platform(platform)]:
                existed = await self.store.exists_by_natural_key(
                    "status", {"platform": Platform(platform), "platform_status_code": code}
                )
                await self.resolve(platform, code)
                if not existed:
                    created += 1
        await self.store.commit()
        logger.info(f"Status taxonomy seeded: {created} created")
        return created
