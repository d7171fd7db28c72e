"""StockLedger — availability checks and decrements against product variants.

The ledger is constructed per unit of work. It caches the products it loads so
that validation and decrement in the same checkout operate on the same
aggregate instances, and so each touched product is persisted exactly once.
"""

from collections import OrderedDict

import structlog
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.errors import InsufficientStockError

logger = structlog.get_logger(__name__)


class StockLedger:
    def __init__(self, repository=None):
        self._repository = repository
        self._products: OrderedDict[str, Product] = OrderedDict()

    @property
    def repository(self):
        if self._repository is None:
            self._repository = current_domain.repository_for(Product)
        return self._repository

    def product(self, product_id) -> Product:
        key = str(product_id)
        if key not in self._products:
            self._products[key] = self.repository.get(key)
        return self._products[key]

    def ensure_available(self, lines) -> None:
        """Check every ``(product_id, variant_id, quantity)`` line before anything mutates.

        Quantities for the same variant are summed so that two cart lines for
        one variant cannot each pass on their own and oversell together.
        """
        requested: OrderedDict[tuple[str, str], int] = OrderedDict()
        for product_id, variant_id, quantity in lines:
            key = (str(product_id), str(variant_id))
            requested[key] = requested.get(key, 0) + quantity

        shortfalls = []
        for (product_id, variant_id), quantity in requested.items():
            variant = self.product(product_id).variant(variant_id)
            if variant.stock < quantity:
                shortfalls.append(
                    f"Insufficient stock for variant {variant.sku}: requested {quantity}, available {variant.stock}"
                )

        if shortfalls:
            logger.info("stock_check_failed", shortfalls=len(shortfalls))
            raise InsufficientStockError({"stock": shortfalls})

    def reserve_and_decrement(self, product_id, variant_id, quantity: int) -> int:
        """Decrement stock immediately, returns the remaining stock."""
        product = self.product(product_id)
        product.sell(variant_id, quantity)
        return product.variant(variant_id).stock

    def flush(self) -> None:
        """Persist every product touched through this ledger."""
        for product in self._products.values():
            self.repository.add(product)
