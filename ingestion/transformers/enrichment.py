"""
Shared mapping rules for order dimensions.

Platform adapters differ in raw-record shape but classify payment, shipping,
geography, dates and price ranges the same way; those rules live here.
"""

from typing import Any, Optional
from datetime import datetime, timezone

from schemas.normalized import (
    GeographyRecord,
    PaymentRecord,
    ProcessingDateRecord,
    ShippingRecord,
)

COD_FEE = 5000.0

_TIER_1 = ("hà nội", "ha noi", "tp hcm", "hồ chí minh", "ho chi minh")
_TIER_2 = ("đà nẵng", "da nang", "hải phòng", "hai phong")
_METROPOLITAN = ("hà nội", "ha noi", "tp hcm", "hồ chí minh", "ho chi minh", "đà nẵng", "da nang")

_REGIONS = (
    (("hà nội", "ha noi", "hải phòng", "hai phong"), "NORTH"),
    (("đà nẵng", "da nang"), "CENTRAL"),
    (("tp hcm", "hồ chí minh", "ho chi minh"), "SOUTH"),
)


# ============================================================================
# Parsing
# ============================================================================

def parse_float(value: Any) -> Optional[float]:
    """Safely parse float value"""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def parse_int(value: Any) -> Optional[int]:
    """Safely parse int value"""
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse unix seconds, unix milliseconds or ISO-8601 strings into a naive UTC
    datetime. Returns None for anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value

    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
        seconds = float(value)
        if seconds > 1e11:
            seconds /= 1000.0
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None

    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def money(value: Any) -> float:
    return parse_float(value) or 0.0


# ============================================================================
# Dimensions
# ============================================================================

def date_key(moment: Optional[datetime]) -> Optional[int]:
    if moment is None:
        return None
    return moment.year * 10000 + moment.month * 100 + moment.day


def processing_date(moment: Optional[datetime]) -> Optional[ProcessingDateRecord]:
    """Calendar attributes for the day an order was created."""
    if moment is None:
        return None
    day = moment.date() if isinstance(moment, datetime) else moment
    return ProcessingDateRecord(
        date_key=date_key(moment),
        full_date=datetime(day.year, day.month, day.day),
        day_of_week=day.isoweekday(),
        day_name=day.strftime("%A"),
        week_of_year=day.isocalendar()[1],
        month=day.month,
        quarter=(day.month - 1) // 3 + 1,
        year=day.year,
        is_weekend=day.isoweekday() >= 6,
        is_shopping_season=day.month in (11, 12),
    )


def payment_category(method: Optional[str], is_cod: bool) -> str:
    if is_cod:
        return "CASH_ON_DELIVERY"
    if not method:
        return "UNKNOWN"

    lowered = method.lower()
    if "cod" in lowered or "cash on delivery" in lowered:
        return "CASH_ON_DELIVERY"
    if "shopeepay" in lowered or "wallet" in lowered or "momo" in lowered or "zalopay" in lowered:
        return "DIGITAL_WALLET"
    if "bank" in lowered or "transfer" in lowered:
        return "BANK_TRANSFER"
    if "credit" in lowered or "debit" in lowered or "card" in lowered:
        return "CARD_PAYMENT"
    if "installment" in lowered:
        return "INSTALLMENT"
    return "OTHER"


def payment_provider(method: Optional[str]) -> str:
    if not method:
        return "UNKNOWN"

    lowered = method.lower()
    for needle, provider in (
        ("shopeepay", "SHOPEEPAY"),
        ("momo", "MOMO"),
        ("zalopay", "ZALOPAY"),
        ("vnpay", "VNPAY"),
        ("visa", "VISA"),
        ("mastercard", "MASTERCARD"),
        ("bank", "BANK"),
    ):
        if needle in lowered:
            return provider
    return "OTHER"


def build_payment(method: Optional[str], is_cod: bool, transaction_fee: float = 0.0) -> PaymentRecord:
    category = payment_category(method, is_cod)
    return PaymentRecord(
        payment_method=method,
        payment_category=category,
        payment_provider="COD" if category == "CASH_ON_DELIVERY" else payment_provider(method),
        is_cod=category == "CASH_ON_DELIVERY",
        is_prepaid=category != "CASH_ON_DELIVERY",
        is_installment=category == "INSTALLMENT",
        transaction_fee=transaction_fee,
    )


def shipping_provider_type(provider: Optional[str]) -> str:
    if not provider:
        return "UNKNOWN"
    lowered = provider.lower()
    if "shopee" in lowered or "tiktok" in lowered:
        return "PLATFORM_OWNED"
    if "post" in lowered:
        return "POSTAL_SERVICE"
    return "THIRD_PARTY"


def shipping_service_type(days_to_ship: Optional[int], provider: Optional[str] = None) -> str:
    if provider and any(word in provider.lower() for word in ("express", "fast", "speed", "hỏa tốc")):
        return "EXPRESS"
    if days_to_ship is None:
        return "STANDARD"
    if days_to_ship == 0:
        return "SAME_DAY"
    if days_to_ship == 1:
        return "NEXT_DAY"
    if days_to_ship <= 2:
        return "EXPRESS"
    if days_to_ship <= 5:
        return "STANDARD"
    return "ECONOMY"


def build_shipping(
    provider: Optional[str],
    shipping_fee: float,
    is_cod: bool,
    days_to_ship: Optional[int] = None,
    weight_grams: Optional[int] = None,
) -> ShippingRecord:
    service_type = shipping_service_type(days_to_ship, provider)
    return ShippingRecord(
        provider_name=provider,
        provider_type=shipping_provider_type(provider),
        service_type=service_type,
        shipping_fee=shipping_fee,
        cod_fee=COD_FEE if is_cod else 0.0,
        weight_grams=weight_grams,
        estimated_delivery_days=days_to_ship,
        is_express=service_type in ("SAME_DAY", "NEXT_DAY", "EXPRESS"),
        is_free_shipping=shipping_fee == 0,
    )


def _matches(province: Optional[str], names) -> bool:
    if not province:
        return False
    lowered = province.lower()
    return any(name in lowered for name in names)


def economic_tier(province: Optional[str]) -> str:
    if _matches(province, _TIER_1):
        return "TIER_1"
    if _matches(province, _TIER_2):
        return "TIER_2"
    return "TIER_3"


def build_geography(
    province: Optional[str],
    district: Optional[str] = None,
    ward: Optional[str] = None,
    postal_code: Optional[str] = None,
    country_code: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> GeographyRecord:
    metropolitan = _matches(province, _METROPOLITAN)
    urban = metropolitan or bool(district and "quận" in district.lower())
    region = next((name for names, name in _REGIONS if _matches(province, names)), None)
    return GeographyRecord(
        country_code=(country_code or "VN").upper()[:4],
        province_name=province,
        district_name=district,
        ward_name=ward,
        postal_code=postal_code,
        region_name=region,
        is_urban=urban,
        is_metropolitan=metropolitan,
        economic_tier=economic_tier(province),
        latitude=latitude,
        longitude=longitude,
    )


def price_range(price: Optional[float]) -> Optional[str]:
    if price is None:
        return None
    if price < 50000:
        return "UNDER_50K"
    if price < 100000:
        return "50K_100K"
    if price < 500000:
        return "100K_500K"
    if price < 1000000:
        return "500K_1M"
    return "OVER_1M"

