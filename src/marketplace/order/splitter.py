"""OrderSplitter — groups resolved cart lines into one bucket per seller."""

from collections import OrderedDict
from dataclasses import dataclass, field

from marketplace.order.order import money


@dataclass(frozen=True)
class ResolvedLine:
    """A cart line resolved against the catalogue."""

    product_id: str
    variant_id: str
    seller_id: str
    category_id: str | None
    quantity: int
    unit_price: float

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    def as_order_line(self) -> dict:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "category_id": self.category_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@dataclass
class SellerBucket:
    seller_id: str
    lines: list[ResolvedLine] = field(default_factory=list)

    @property
    def amount(self) -> float:
        return money(sum(line.line_total for line in self.lines))


class OrderSplitter:
    """Splits lines by seller, keeping the order in which sellers first appear."""

    def split(self, lines) -> list[SellerBucket]:
        buckets: OrderedDict[str, SellerBucket] = OrderedDict()
        for line in lines:
            bucket = buckets.get(line.seller_id)
            if bucket is None:
                bucket = buckets[line.seller_id] = SellerBucket(seller_id=line.seller_id)
            bucket.lines.append(line)
        return list(buckets.values())
