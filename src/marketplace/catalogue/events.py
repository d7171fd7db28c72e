"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Product")
class ProductRegistered:
    """A product became available for sale through the marketplace."""

    __version__ = 1

    product_id: Identifier(required=True)
    seller_id: Identifier()
    category_id: Identifier()
    title: String(required=True)
    variant_count: Integer(required=True)
    registered_at: DateTime(required=True)


@marketplace.event(part_of="Product")
class VariantRestocked:
    __version__ = 1

    product_id: Identifier(required=True)
    variant_id: Identifier(required=True)
    quantity_added: Integer(required=True)
    stock: Integer(required=True)


@marketplace.event(part_of="Product")
class VariantStockDecremented:
    """Units of a variant were sold through a checkout."""

    __version__ = 1

    product_id: Identifier(required=True)
    variant_id: Identifier(required=True)
    quantity: Integer(required=True)
    stock: Integer(required=True)
