"""Product aggregate with its purchasable variants.

Only the slice of the catalogue that settlement depends on lives here: who
sells the product, which category it belongs to (for commission), the variant
prices and the stock counts. Products without a seller belong to the platform.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from marketplace.catalogue.events import (
    ProductRegistered,
    VariantRestocked,
    VariantStockDecremented,
)
from marketplace.domain import marketplace
from marketplace.errors import InsufficientStockError

PLATFORM_SELLER_ID = "platform-seller-id"


@marketplace.entity(part_of="Product", limit=None)
class ProductVariant:
    sku = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)


@marketplace.aggregate
class Product:
    seller_id = Identifier()  # None when the platform sells the product itself
    category_id = Identifier()
    title = String(required=True, max_length=255)
    sales_count = Integer(default=0, min_value=0)
    variants = HasMany(ProductVariant)
    created_at = DateTime()
    updated_at = DateTime()

    @property
    def attributed_seller_id(self) -> str:
        return str(self.seller_id) if self.seller_id else PLATFORM_SELLER_ID

    @classmethod
    def register(cls, title, variants_data, seller_id=None, category_id=None):
        """Register a product with one or more variants.

        Args:
            variants_data: List of dicts with sku, price and stock.
        """
        if not variants_data:
            raise ValidationError({"variants": ["A product needs at least one variant"]})

        now = datetime.now(UTC)
        product = cls(
            seller_id=seller_id,
            category_id=category_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        for data in variants_data:
            product.add_variants(
                ProductVariant(
                    sku=data["sku"],
                    price=data["price"],
                    stock=data.get("stock", 0),
                )
            )

        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                seller_id=str(seller_id) if seller_id else None,
                category_id=str(category_id) if category_id else None,
                title=title,
                variant_count=len(product.variants),
                registered_at=now,
            )
        )
        return product

    def variant(self, variant_id) -> ProductVariant:
        found = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
        if found is None:
            raise ValidationError({"variant_id": [f"Variant {variant_id} does not belong to product {self.id}"]})
        return found

    def restock(self, variant_id, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Restock quantity must be positive"]})
        variant = self.variant(variant_id)
        variant.stock += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            VariantRestocked(
                product_id=str(self.id),
                variant_id=str(variant.id),
                quantity_added=quantity,
                stock=variant.stock,
            )
        )

    def sell(self, variant_id, quantity: int) -> None:
        """Decrement a variant's stock and count the sale."""
        variant = self.variant(variant_id)
        if variant.stock < quantity:
            raise InsufficientStockError(
                {"stock": [f"Insufficient stock for variant {variant.sku}: requested {quantity}, available {variant.stock}"]}
            )
        variant.stock -= quantity
        self.sales_count = (self.sales_count or 0) + quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            VariantStockDecremented(
                product_id=str(self.id),
                variant_id=str(variant.id),
                quantity=quantity,
                stock=variant.stock,
            )
        )
