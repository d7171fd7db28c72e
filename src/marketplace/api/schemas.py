"""Pydantic request/response schemas for the Marketplace API.

These are external contracts, kept separate from the Protean commands they
are translated into.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from marketplace.payment.payment import PaymentMethod
from marketplace.withdrawal.withdrawal import WithdrawalMethod


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    recipient: str
    line1: str
    line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str | None = None
    country: str
    phone: str | None = None


class OrderItemSchema(BaseModel):
    product_id: str
    variant_id: str
    category_id: str | None = None
    quantity: int
    unit_price: float


class ShipmentSchema(BaseModel):
    carrier: str | None = None
    tracking_number: str | None = None
    shipping_notes: str | None = None
    shipped_date: datetime | None = None
    delivery_date: datetime | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    checkout_id: str
    buyer_id: str
    seller_id: str
    amount: float
    currency: str
    status: str
    payment_method: str
    settled: bool
    items: list[OrderItemSchema]
    shipment: ShipmentSchema | None = None
    shipping_address: AddressSchema | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            checkout_id=str(order.checkout_id),
            buyer_id=str(order.buyer_id),
            seller_id=str(order.seller_id),
            amount=order.amount,
            currency=order.currency,
            status=order.status,
            payment_method=order.payment_method,
            settled=bool(order.settled),
            items=[
                OrderItemSchema(
                    product_id=str(i.product_id),
                    variant_id=str(i.variant_id),
                    category_id=str(i.category_id) if i.category_id else None,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                )
                for i in order.items
            ],
            shipment=ShipmentSchema(**order.shipment.to_dict()) if order.shipment else None,
            shipping_address=AddressSchema(**order.shipping_address.to_dict()) if order.shipping_address else None,
        )


# ---------------------------------------------------------------------------
# Catalogue and cart (collaborator surface)
# ---------------------------------------------------------------------------
class VariantSchema(BaseModel):
    sku: str
    price: float = Field(ge=0)
    stock: int = Field(ge=0, default=0)


class RegisterProductRequest(BaseModel):
    title: str
    seller_id: str | None = None
    category_id: str | None = None
    variants: list[VariantSchema] = Field(min_length=1)


class RegisterProductResponse(BaseModel):
    product_id: str
    variant_ids: list[str]


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)


class StockResponse(BaseModel):
    stock: int


class CartIdResponse(BaseModel):
    cart_id: str


class AddCartItemRequest(BaseModel):
    product_id: str
    variant_id: str
    quantity: int = Field(ge=1, default=1)


class ItemIdResponse(BaseModel):
    item_id: str


# ---------------------------------------------------------------------------
# Checkout and payments
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    cart_id: str | None = None
    address: AddressSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "payment_method": "CASH_ON_DELIVERY",
                    "address": {
                        "recipient": "Ayesha Khan",
                        "line1": "House 12, Street 4",
                        "city": "Lahore",
                        "country": "PK",
                    },
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    checkout_id: str
    txn_ref_no: str
    orders: list[OrderResponse] = []
    payment_url: str | None = None
    fields: dict[str, str] = {}


class SettlementResponse(BaseModel):
    checkout_id: str
    txn_ref_no: str
    status: str
    order_ids: list[str]
    response_code: str | None = None
    response_message: str | None = None


# ---------------------------------------------------------------------------
# Order transitions
# ---------------------------------------------------------------------------
class ReasonRequest(BaseModel):
    reason: str | None = None


class ShipOrderRequest(BaseModel):
    carrier: str | None = None
    tracking_number: str | None = None


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------
class WalletSummaryResponse(BaseModel):
    wallet_id: str
    seller_id: str
    balance: float
    available_balance: float
    pending_balance: float
    currency: str


class WalletTransactionSchema(BaseModel):
    transaction_id: str
    type: str
    status: str
    amount: float
    order_id: str | None = None
    withdrawal_id: str | None = None
    gross_amount: float | None = None
    commission_amount: float | None = None
    commission_rate: float | None = None
    hold_until: datetime | None = None
    released_at: datetime | None = None
    description: str | None = None
    created_at: datetime


class WalletTransactionPage(BaseModel):
    items: list[WalletTransactionSchema]
    total: int
    page: int
    page_size: int


class WalletPage(BaseModel):
    items: list[WalletSummaryResponse]
    total: int
    page: int
    page_size: int


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------
class PayoutDetailsSchema(BaseModel):
    account_holder: str | None = None
    account_number: str | None = None
    bank_name: str | None = None
    routing_number: str | None = None
    swift_code: str | None = None


class WithdrawalRequest(BaseModel):
    amount: float = Field(gt=0)
    method: WithdrawalMethod = WithdrawalMethod.BANK_TRANSFER
    details: PayoutDetailsSchema = PayoutDetailsSchema()


class FailWithdrawalRequest(BaseModel):
    reason: str


class WithdrawalResponse(BaseModel):
    withdrawal_id: str
    wallet_id: str
    seller_id: str
    amount: float
    currency: str
    method: str
    status: str
    details: PayoutDetailsSchema
    failure_reason: str | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_withdrawal(cls, withdrawal) -> "WithdrawalResponse":
        return cls(
            withdrawal_id=str(withdrawal.id),
            wallet_id=str(withdrawal.wallet_id),
            seller_id=str(withdrawal.seller_id),
            amount=withdrawal.amount,
            currency=withdrawal.currency,
            method=withdrawal.method,
            status=withdrawal.status,
            details=PayoutDetailsSchema(**withdrawal.payout_details),
            failure_reason=withdrawal.failure_reason,
            processed_at=withdrawal.processed_at,
            created_at=withdrawal.created_at,
        )


class WithdrawalPage(BaseModel):
    items: list[WithdrawalResponse]
    total: int
    page: int
    page_size: int


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------
class SetCommissionRequest(BaseModel):
    rate: float = Field(ge=0, le=1)
    description: str | None = None


class CommissionEntry(SetCommissionRequest):
    category_id: str


class BulkCommissionRequest(BaseModel):
    entries: list[CommissionEntry] = Field(min_length=1)


class CommissionResponse(BaseModel):
    commission_id: str
    category_id: str
    rate: float
    description: str | None = None


class StatusResponse(BaseModel):
    status: str
