"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state — no cross-user sharing.
"""

from dataclasses import dataclass, field


@dataclass
class SellerState:
    """A simulated seller and the catalogue it listed."""

    seller_id: str
    products: list[tuple[str, str]] = field(default_factory=list)  # (product_id, variant_id)


@dataclass
class BuyerState:
    """A simulated buyer working through one checkout."""

    buyer_id: str
    cart_id: str | None = None
    order_ids: list[str] = field(default_factory=list)
    seller_ids: dict[str, str] = field(default_factory=dict)  # order_id -> seller_id
