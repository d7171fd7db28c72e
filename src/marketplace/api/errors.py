"""Exception handlers mapping marketplace errors onto HTTP responses.

Every body has the shape ``{"error": ..., "kind": "<stable kind>"}``.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from marketplace.errors import (
    ConfigurationError,
    EmptyCartError,
    InsufficientFundsError,
    InsufficientStockError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
    PaymentInitiationError,
    PaymentVerificationError,
    UnauthorizedTransitionError,
)

_VALIDATION_STATUS = {
    InsufficientStockError: 422,
    EmptyCartError: 422,
    InsufficientFundsError: 422,
    InvalidTransitionError: 409,
}

_MARKETPLACE_STATUS = {
    UnauthorizedTransitionError: 403,
    PaymentVerificationError: 401,
    NotFoundError: 404,
    PaymentInitiationError: 502,
    ConfigurationError: 500,
}


def _validation_handler(status_code: int):
    async def handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.messages, "kind": getattr(exc, "kind", "validation_error")},
        )

    return handler


def _marketplace_handler(status_code: int):
    async def handler(request: Request, exc: MarketplaceError) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": exc.message, "kind": exc.kind})

    return handler


async def _not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc), "kind": "not_found"})


def register_error_handlers(app: FastAPI) -> None:
    """Protean's handlers first, then the marketplace's more specific ones."""
    register_exception_handlers(app)

    app.add_exception_handler(ValidationError, _validation_handler(400))
    for exc_class, status_code in _VALIDATION_STATUS.items():
        app.add_exception_handler(exc_class, _validation_handler(status_code))

    app.add_exception_handler(ObjectNotFoundError, _not_found_handler)
    for exc_class, status_code in _MARKETPLACE_STATUS.items():
        app.add_exception_handler(exc_class, _marketplace_handler(status_code))
