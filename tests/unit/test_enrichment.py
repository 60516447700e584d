"""
Unit tests for shared enrichment mapping
"""

import pytest
from datetime import datetime
from ingestion.transformers.enrichment import (
    build_geography,
    build_payment,
    build_shipping,
    money,
    parse_datetime,
    processing_date,
    shipping_service_type,
)


class TestParsing:

    def test_parse_datetime_formats(self):
        expected = datetime(2025, 3, 10, 9, 30)
        assert parse_datetime(1741599000) == expected
        assert parse_datetime(1741599000000) == expected
        assert parse_datetime("1741599000") == expected
        assert parse_datetime("2025-03-10T16:30:00+07:00") == expected
        assert parse_datetime("2025-03-10T09:30:00Z") == expected

    @pytest.mark.parametrize("value", [None, "", "not a date", [], {}])
    def test_parse_datetime_rejects_garbage(self, value):
        assert parse_datetime(value) is None

    def test_money_defaults_to_zero(self):
        assert money("12.5") == 12.5
        assert money(None) == 0.0
        assert money("abc") == 0.0


class TestDimensions:

    def test_processing_date(self):
        record = processing_date(datetime(2025, 11, 15, 23, 59))

        assert record.date_key == 20251115
        assert record.day_name == "Saturday"
        assert record.is_weekend is True
        assert record.quarter == 4
        assert record.is_shopping_season is True

    def test_cod_payment(self):
        payment = build_payment("Thanh toán khi nhận hàng", is_cod=True)

        assert payment.payment_category == "CASH_ON_DELIVERY"
        assert payment.payment_provider == "COD"
        assert payment.is_prepaid is False

    def test_wallet_payment(self):
        payment = build_payment("MoMo Wallet", is_cod=False)

        assert payment.payment_category == "DIGITAL_WALLET"
        assert payment.payment_provider == "MOMO"
        assert payment.is_prepaid is True

    @pytest.mark.parametrize("days,expected", [
        (0, "SAME_DAY"),
        (1, "NEXT_DAY"),
        (4, "STANDARD"),
        (9, "ECONOMY"),
        (None, "STANDARD"),
    ])
    def test_service_type_from_days(self, days, expected):
        assert shipping_service_type(days) == expected

    def test_free_express_shipping(self):
        shipping = build_shipping("GHN Express", 0, is_cod=False)

        assert shipping.service_type == "EXPRESS"
        assert shipping.is_express is True
        assert shipping.is_free_shipping is True
        assert shipping.cod_fee == 0.0
        assert shipping.provider_type == "THIRD_PARTY"

    def test_geography_tiers(self):
        hanoi = build_geography("Hà Nội", district="Quận Cầu Giấy")
        rural = build_geography("Hà Giang", district="Huyện Đồng Văn", country_code="vn")

        assert hanoi.economic_tier == "TIER_1"
        assert hanoi.is_metropolitan is True
        assert hanoi.is_urban is True
        assert rural.economic_tier == "TIER_3"
        assert rural.is_urban is False
        assert rural.country_code == "VN"
