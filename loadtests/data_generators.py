"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that match the field names expected by the
API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker()

CATEGORIES = ["apparel", "books", "electronics", "home", "beauty"]


def unique_user_id(prefix: str) -> str:
    """Generate caller ids like 'seller-lt-a1b2c3d4'."""
    return f"{prefix}-lt-{uuid.uuid4().hex[:8]}"


def seller_headers(seller_id: str) -> dict:
    return {"X-User-Id": seller_id, "X-User-Role": "seller"}


def buyer_headers(buyer_id: str) -> dict:
    return {"X-User-Id": buyer_id, "X-User-Role": "buyer"}


def product_data(num_variants: int = 1) -> dict:
    """Generate a RegisterProductRequest payload."""
    word = fake.word().capitalize()
    return {
        "title": f"{word} {fake.word()}"[:255],
        "category_id": random.choice(CATEGORIES),
        "variants": [
            {
                "sku": f"LT-{uuid.uuid4().hex[:8].upper()}",
                "price": round(random.uniform(250.0, 5000.0), 2),
                "stock": random.randint(50, 500),
            }
            for _ in range(num_variants)
        ],
    }


def shipping_address() -> dict:
    """Generate an AddressSchema payload for a Pakistani address."""
    return {
        "recipient": fake.name()[:255],
        "line1": fake.street_address()[:255],
        "city": random.choice(["Lahore", "Karachi", "Islamabad", "Faisalabad", "Multan"]),
        "postal_code": str(random.randint(10000, 99999)),
        "country": "PK",
        "phone": f"+923{random.randint(0, 49):02d}{random.randint(1000000, 9999999)}",
    }


def shipment_data() -> dict:
    return {
        "carrier": random.choice(["TCS", "Leopards", "M&P", "Trax"]),
        "tracking_number": f"TRK-{uuid.uuid4().hex[:10].upper()}",
    }


def withdrawal_data(amount: float) -> dict:
    return {
        "amount": amount,
        "method": "BANK_TRANSFER",
        "details": {
            "account_holder": fake.name()[:100],
            "account_number": fake.iban(),
            "bank_name": random.choice(["HBL", "MCB", "UBL", "Meezan"]),
        },
    }
