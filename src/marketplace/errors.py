"""Error taxonomy for the marketplace context.

Every error carries a stable ``kind`` string that the API layer returns to
clients. Errors describing bad input derive from Protean's ``ValidationError``
so command handlers roll back their unit of work the same way they do for
field validation failures.
"""

from protean.exceptions import ValidationError


class InsufficientStockError(ValidationError):
    kind = "insufficient_stock"


class EmptyCartError(ValidationError):
    kind = "empty_cart"


class InsufficientFundsError(ValidationError):
    kind = "insufficient_funds"


class InvalidTransitionError(ValidationError):
    kind = "invalid_transition"


class MarketplaceError(Exception):
    """Base for errors that are not input validation failures."""

    kind = "marketplace_error"

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class UnauthorizedTransitionError(MarketplaceError):
    kind = "unauthorized_transition"


class PaymentVerificationError(MarketplaceError):
    kind = "payment_verification_failed"


class PaymentInitiationError(MarketplaceError):
    kind = "payment_initiation_failed"


class NotFoundError(MarketplaceError):
    kind = "not_found"


class ConfigurationError(MarketplaceError):
    kind = "configuration_error"
