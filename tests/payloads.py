"""
Raw order payloads as the platform APIs return them
"""

from datetime import datetime, timezone

UPDATED_AT = int(datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc).timestamp())
CREATED_AT = int(datetime(2025, 3, 9, 20, 0, tzinfo=timezone.utc).timestamp())


def make_shopee_order(order_id="250310ABC", status="COMPLETED", phone="0912345678", total=250000, update_time=UPDATED_AT, items=None):
    return {
        "order_id": order_id,
        "shop_id": 1001,
        "order_status": status,
        "total_amount": total,
        "create_time": CREATED_AT,
        "update_time": update_time,
        "data": {
            "cod": True,
            "payment_method": "Cash on Delivery",
            "shipping_carrier": "SPX Express",
            "actual_shipping_fee": 30000,
            "days_to_ship": 2,
            "buyer_user_id": 777,
            "recipient_address": {
                "phone": phone,
                "state": "Hà Nội",
                "city": "Hà Nội",
                "district": "Quận Cầu Giấy",
                "town": "Dịch Vọng",
                "zipcode": "100000",
                "region": "VN",
            },
            "item_list": items if items is not None else [
                {
                    "item_id": 11,
                    "item_name": "Áo thun",
                    "model_sku": "TSHIRT-M",
                    "model_quantity_purchased": 2,
                    "model_discounted_price": 100000,
                    "model_original_price": 120000,
                    "image_info": {"image_url": "https://cdn.example.com/tshirt.jpg"},
                },
                {
                    "item_id": 12,
                    "item_name": "Mũ",
                    "model_sku": "CAP-1",
                    "model_quantity_purchased": 1,
                    "model_discounted_price": 20000,
                },
            ],
        },
    }


def make_tiktok_order(order_id="577001", status="AWAITING_SHIPMENT", phone="+84 912-345-678"):
    return {
        "id": 1,
        "order_id": order_id,
        "shop_id": "TT_SHOP",
        "status": status,
        "create_time": CREATED_AT,
        "update_time": UPDATED_AT,
        "data": {
            "is_cod": False,
            "user_id": "tt_user_9",
            "buyer_email": "Buyer@Example.com",
            "payment_method_name": "Credit Card",
            "shipping_provider": "J&T Express",
            "payment": {
                "total_amount": "330000",
                "sub_total": "300000",
                "shipping_fee": "20000",
                "tax": "10000",
                "seller_discount": "5000",
                "platform_discount": "5000",
            },
            "recipient_address": {
                "phone_number": phone,
                "postal_code": "700000",
                "region_code": "VN",
                "district_info": [
                    {"address_level": "L0", "address_level_name": "Country", "address_name": "Vietnam"},
                    {"address_level": "L1", "address_level_name": "Province", "address_name": "Hồ Chí Minh"},
                    {"address_level": "L2", "address_level_name": "District", "address_name": "Quận 1"},
                    {"address_level": "L3", "address_level_name": "Ward", "address_name": "Bến Nghé"},
                ],
            },
            "line_items": [
                {"id": "a", "sku_id": "S1", "seller_sku": "BAG-01", "product_id": "P1", "product_name": "Túi", "sale_price": "150000", "original_price": "180000"},
                {"id": "b", "sku_id": "S1", "seller_sku": "BAG-01", "product_id": "P1", "product_name": "Túi", "sale_price": "150000", "original_price": "180000"},
            ],
        },
    }


def make_facebook_order(order_id="fb-42", status=2, phone="0987654321"):
    return {
        "order_id": order_id,
        "shop_id": "page_1",
        "status": status,
        "created_at": "2025-03-09T20:00:00Z",
        "updated_at": "2025-03-10T09:30:00Z",
        "data": {
            "cod": 0,
            "total": 210000,
            "shipping_fee": 15000,
            "tax": 0,
            "discount": 5000,
            "payment_method": "bank_transfer",
            "customer": {"id": "c1", "fb_id": "fb_user_1", "phone_numbers": [phone], "emails": []},
            "shipping_address": {
                "province": "Đà Nẵng",
                "district": "Hải Châu",
                "ward": "Thạch Thang",
                "country": "VN",
                "latitude": "16.07",
                "longitude": "108.22",
            },
            "items": [
                {"product_id": 5, "variation_id": 51, "quantity": 3, "price": 65000, "total_amount": 195000, "product_name": "Nến thơm"},
            ],
        },
    }
