"""FastAPI routes for the Marketplace — checkout, orders, wallets and payouts.

Callers are identified by the ``X-User-Id`` and ``X-User-Role`` headers set by
the gateway in front of this service.
"""

import json
from dataclasses import dataclass
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from protean.utils.globals import current_domain

from marketplace.api.schemas import (
    AddCartItemRequest,
    BulkCommissionRequest,
    CartIdResponse,
    CheckoutRequest,
    CheckoutResponse,
    CommissionResponse,
    FailWithdrawalRequest,
    ItemIdResponse,
    OrderResponse,
    ReasonRequest,
    RegisterProductRequest,
    RegisterProductResponse,
    RestockRequest,
    SetCommissionRequest,
    SettlementResponse,
    ShipOrderRequest,
    StatusResponse,
    StockResponse,
    WalletPage,
    WalletSummaryResponse,
    WalletTransactionPage,
    WalletTransactionSchema,
    WithdrawalPage,
    WithdrawalRequest,
    WithdrawalResponse,
)
from marketplace.cart.management import AddCartItem, CreateCart, RemoveCartItem
from marketplace.catalogue.registration import RegisterProduct, RestockVariant
from marketplace.checkout.placement import PlaceCheckout
from marketplace.checkout.settlement import ReconcileCheckout, SettleExternalPayment
from marketplace.commission.commission import Commission
from marketplace.commission.management import RemoveCommission, SetCommission, SetCommissionsInBulk
from marketplace.errors import NotFoundError, PaymentVerificationError, UnauthorizedTransitionError
from marketplace.order.lifecycle import (
    AcceptOrder,
    CancelOrder,
    CompleteOrder,
    DeliverOrder,
    RejectOrder,
    ShipOrder,
)
from marketplace.order.order import ActorRole, Order
from marketplace.payment.gateway import gateway_for
from marketplace.payment.payment import PaymentMethod
from marketplace.wallet.ledger import summarize, transaction_page
from marketplace.wallet.release import ReleaseHeldFunds
from marketplace.wallet.wallet import Wallet
from marketplace.withdrawal.processing import (
    CancelWithdrawal,
    CompleteWithdrawal,
    FailWithdrawal,
    StartWithdrawalProcessing,
)
from marketplace.withdrawal.request import RequestWithdrawal
from marketplace.withdrawal.stats import (
    marketplace_withdrawal_stats,
    withdrawal_details,
    withdrawal_history,
    withdrawal_stats,
)
from marketplace.withdrawal.withdrawal import Withdrawal, WithdrawalStatus


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN.value


def current_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default=ActorRole.BUYER.value),
) -> Actor:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    role = x_user_role.lower()
    if role not in {r.value for r in ActorRole}:
        raise HTTPException(status_code=400, detail=f"Unknown role {x_user_role}")
    return Actor(id=x_user_id, role=role)


def require_admin(actor: Actor = Depends(current_actor)) -> Actor:
    if not actor.is_admin:
        raise UnauthorizedTransitionError("Admin role required", actor_id=actor.id)
    return actor


def require_seller(actor: Actor = Depends(current_actor)) -> Actor:
    if actor.role != ActorRole.SELLER.value:
        raise UnauthorizedTransitionError("Seller role required", actor_id=actor.id)
    return actor


# ---------------------------------------------------------------------------
# Product Router (catalogue collaborator surface)
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=RegisterProductResponse)
async def register_product(body: RegisterProductRequest, actor: Actor = Depends(current_actor)):
    """Register a product. Sellers register their own; admins may register for anyone."""
    if actor.is_admin:
        seller_id = body.seller_id
    elif actor.role == ActorRole.SELLER.value:
        seller_id = actor.id
    else:
        raise UnauthorizedTransitionError("Only sellers and admins may register products", actor_id=actor.id)

    command = RegisterProduct(
        title=body.title,
        seller_id=seller_id,
        category_id=body.category_id,
        variants=json.dumps([v.model_dump() for v in body.variants]),
    )
    result = current_domain.process(command, asynchronous=False)
    return RegisterProductResponse(**result)


@product_router.post("/{product_id}/variants/{variant_id}/restock", response_model=StockResponse)
async def restock_variant(product_id: str, variant_id: str, body: RestockRequest) -> StockResponse:
    command = RestockVariant(product_id=product_id, variant_id=variant_id, quantity=body.quantity)
    stock = current_domain.process(command, asynchronous=False)
    return StockResponse(stock=stock)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(actor: Actor = Depends(current_actor)) -> CartIdResponse:
    """Return the caller's active cart, creating one if needed."""
    cart_id = current_domain.process(CreateCart(buyer_id=actor.id), asynchronous=False)
    return CartIdResponse(cart_id=cart_id)


@cart_router.post("/{cart_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_cart_item(cart_id: str, body: AddCartItemRequest) -> ItemIdResponse:
    command = AddCartItem(
        cart_id=cart_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    item_id = current_domain.process(command, asynchronous=False)
    return ItemIdResponse(item_id=item_id)


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(cart_id: str, item_id: str) -> StatusResponse:
    current_domain.process(RemoveCartItem(cart_id=cart_id, item_id=item_id), asynchronous=False)
    return StatusResponse(status="removed")


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest, response: Response, actor: Actor = Depends(current_actor)):
    """Turn the buyer's cart into one order per seller.

    External payments answer 202 with a signed redirect instead of orders;
    orders are created when the provider's callback arrives.
    """
    command = PlaceCheckout(
        buyer_id=actor.id,
        payment_method=body.payment_method.value,
        cart_id=body.cart_id,
        address=json.dumps(body.address.model_dump()) if body.address else None,
    )
    result = current_domain.process(command, asynchronous=False)
    if result.deferred:
        response.status_code = 202

    return CheckoutResponse(
        checkout_id=result.checkout_id,
        txn_ref_no=result.txn_ref_no,
        orders=[OrderResponse.from_order(order) for order in result.orders],
        payment_url=result.payment_url,
        fields={k: str(v) for k, v in result.fields.items()},
    )


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


async def _callback_fields(request: Request) -> dict:
    # The provider posts its pp_* fields form-encoded; JSON is accepted too
    if request.headers.get("content-type", "").startswith("application/json"):
        return await request.json()
    return dict(parse_qsl((await request.body()).decode()))


@payment_router.post("/callback", response_model=SettlementResponse)
async def payment_callback(request: Request) -> SettlementResponse:
    """Settle a deferred checkout from the provider's signed callback."""
    fields = await _callback_fields(request)
    try:
        gateway_for(PaymentMethod.EXTERNAL.value).verify_callback(fields)
    except PaymentVerificationError:
        raise HTTPException(status_code=401, detail="Invalid callback signature")

    summary = current_domain.process(SettleExternalPayment(fields=json.dumps(fields)), asynchronous=False)
    return SettlementResponse(**summary)


@payment_router.post("/reconcile/{txn_ref_no}", response_model=SettlementResponse)
async def reconcile_payment(txn_ref_no: str, actor: Actor = Depends(current_actor)) -> SettlementResponse:
    """Ask the provider for the status of a checkout whose callback never arrived."""
    summary = current_domain.process(ReconcileCheckout(txn_ref_no=txn_ref_no), asynchronous=False)
    return SettlementResponse(**summary)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _transition(command_class, order_id: str, actor: Actor, **kwargs) -> OrderResponse:
    command = command_class(order_id=order_id, actor_id=actor.id, actor_role=actor.role, **kwargs)
    order = current_domain.process(command, asynchronous=False)
    return OrderResponse.from_order(order)


@order_router.get("", response_model=list[OrderResponse])
async def list_seller_orders(
    status: str | None = None,
    seller_id: str | None = None,
    actor: Actor = Depends(current_actor),
) -> list[OrderResponse]:
    """A seller's orders, newest first. Admins pick the seller with ``seller_id``."""
    if actor.is_admin:
        if not seller_id:
            raise HTTPException(status_code=400, detail="seller_id is required for admins")
    elif actor.role == ActorRole.SELLER.value:
        seller_id = actor.id
    else:
        raise UnauthorizedTransitionError("Seller role required", actor_id=actor.id)

    orders = current_domain.repository_for(Order).for_seller(seller_id, status=status)
    return [OrderResponse.from_order(order) for order in orders]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    if not actor.is_admin and actor.id not in {str(order.buyer_id), str(order.seller_id)}:
        raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/accept", response_model=OrderResponse)
async def accept_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return _transition(AcceptOrder, order_id, actor)


@order_router.post("/{order_id}/reject", response_model=OrderResponse)
async def reject_order(
    order_id: str, body: ReasonRequest | None = None, actor: Actor = Depends(current_actor)
) -> OrderResponse:
    return _transition(RejectOrder, order_id, actor, reason=body.reason if body else None)


@order_router.post("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(
    order_id: str, body: ShipOrderRequest | None = None, actor: Actor = Depends(current_actor)
) -> OrderResponse:
    body = body or ShipOrderRequest()
    return _transition(ShipOrder, order_id, actor, carrier=body.carrier, tracking_number=body.tracking_number)


@order_router.post("/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return _transition(DeliverOrder, order_id, actor)


@order_router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return _transition(CompleteOrder, order_id, actor)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str, body: ReasonRequest | None = None, actor: Actor = Depends(current_actor)
) -> OrderResponse:
    return _transition(CancelOrder, order_id, actor, reason=body.reason if body else None)


# ---------------------------------------------------------------------------
# Wallet Router
# ---------------------------------------------------------------------------
wallet_router = APIRouter(prefix="/wallets", tags=["wallets"])


@wallet_router.get("/me", response_model=WalletSummaryResponse)
async def my_wallet(actor: Actor = Depends(require_seller)) -> WalletSummaryResponse:
    """Balance summary; matured credits are released before reading."""
    summary = current_domain.process(ReleaseHeldFunds(seller_id=actor.id), asynchronous=False)
    return WalletSummaryResponse(**summary)


@wallet_router.get("/all", response_model=WalletPage)
async def all_wallets(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(require_admin),
) -> WalletPage:
    """Every seller's balances as stored; matured credits move on the seller's next read or the sweep."""
    result = current_domain.repository_for(Wallet).page(page=page, page_size=page_size)
    return WalletPage(
        items=[WalletSummaryResponse(**summarize(wallet)) for wallet in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@wallet_router.get("/me/transactions", response_model=WalletTransactionPage)
async def my_wallet_transactions(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    type_: str | None = Query(default=None, alias="type"),
    actor: Actor = Depends(require_seller),
) -> WalletTransactionPage:
    current_domain.process(ReleaseHeldFunds(seller_id=actor.id), asynchronous=False)
    wallet = current_domain.repository_for(Wallet).for_seller(actor.id)
    result = transaction_page(wallet, page=page, page_size=page_size, type_=type_)
    return WalletTransactionPage(
        items=[
            WalletTransactionSchema(
                transaction_id=str(t.id),
                type=t.type,
                status=t.status,
                amount=t.amount,
                order_id=str(t.order_id) if t.order_id else None,
                withdrawal_id=str(t.withdrawal_id) if t.withdrawal_id else None,
                gross_amount=t.gross_amount,
                commission_amount=t.commission_amount,
                commission_rate=t.commission_rate,
                hold_until=t.hold_until,
                released_at=t.released_at,
                description=t.description,
                created_at=t.created_at,
            )
            for t in result["items"]
        ],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


# ---------------------------------------------------------------------------
# Withdrawal Router
# ---------------------------------------------------------------------------
withdrawal_router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


@withdrawal_router.post("", status_code=201, response_model=WithdrawalResponse)
async def request_withdrawal(body: WithdrawalRequest, actor: Actor = Depends(require_seller)) -> WithdrawalResponse:
    command = RequestWithdrawal(
        seller_id=actor.id,
        amount=body.amount,
        method=body.method.value,
        details=json.dumps(body.details.model_dump(exclude_none=True)),
    )
    withdrawal = current_domain.process(command, asynchronous=False)
    return WithdrawalResponse.from_withdrawal(withdrawal)


@withdrawal_router.get("", response_model=list[WithdrawalResponse])
async def list_withdrawals(
    status: str | None = None, actor: Actor = Depends(require_seller)
) -> list[WithdrawalResponse]:
    return [WithdrawalResponse.from_withdrawal(w) for w in withdrawal_history(actor.id, status=status)]


@withdrawal_router.get("/stats")
async def my_withdrawal_stats(actor: Actor = Depends(require_seller)) -> dict:
    return withdrawal_stats(actor.id)


@withdrawal_router.get("/stats/all")
async def all_withdrawal_stats(actor: Actor = Depends(require_admin)) -> dict:
    return marketplace_withdrawal_stats()


@withdrawal_router.get("/all", response_model=WithdrawalPage)
async def all_withdrawals(
    status: WithdrawalStatus | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(require_admin),
) -> WithdrawalPage:
    """The payout queue across all sellers, newest first."""
    result = current_domain.repository_for(Withdrawal).page(
        status=status.value if status else None, page=page, page_size=page_size
    )
    return WithdrawalPage(
        items=[WithdrawalResponse.from_withdrawal(w) for w in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@withdrawal_router.get("/{withdrawal_id}", response_model=WithdrawalResponse)
async def get_withdrawal(withdrawal_id: str, actor: Actor = Depends(current_actor)) -> WithdrawalResponse:
    return WithdrawalResponse.from_withdrawal(withdrawal_details(withdrawal_id, actor.id, actor.is_admin))


def _process(command_class, withdrawal_id: str, actor: Actor, **kwargs) -> WithdrawalResponse:
    command = command_class(withdrawal_id=withdrawal_id, actor_id=actor.id, actor_role=actor.role, **kwargs)
    withdrawal = current_domain.process(command, asynchronous=False)
    return WithdrawalResponse.from_withdrawal(withdrawal)


@withdrawal_router.post("/{withdrawal_id}/process", response_model=WithdrawalResponse)
async def start_processing(withdrawal_id: str, actor: Actor = Depends(current_actor)) -> WithdrawalResponse:
    return _process(StartWithdrawalProcessing, withdrawal_id, actor)


@withdrawal_router.post("/{withdrawal_id}/complete", response_model=WithdrawalResponse)
async def complete_withdrawal(withdrawal_id: str, actor: Actor = Depends(current_actor)) -> WithdrawalResponse:
    return _process(CompleteWithdrawal, withdrawal_id, actor)


@withdrawal_router.post("/{withdrawal_id}/fail", response_model=WithdrawalResponse)
async def fail_withdrawal(
    withdrawal_id: str, body: FailWithdrawalRequest, actor: Actor = Depends(current_actor)
) -> WithdrawalResponse:
    return _process(FailWithdrawal, withdrawal_id, actor, reason=body.reason)


@withdrawal_router.post("/{withdrawal_id}/cancel", response_model=WithdrawalResponse)
async def cancel_withdrawal(withdrawal_id: str, actor: Actor = Depends(current_actor)) -> WithdrawalResponse:
    return _process(CancelWithdrawal, withdrawal_id, actor)


# ---------------------------------------------------------------------------
# Commission Router
# ---------------------------------------------------------------------------
commission_router = APIRouter(prefix="/commissions", tags=["commissions"])


def _commission_response(commission: Commission) -> CommissionResponse:
    return CommissionResponse(
        commission_id=str(commission.id),
        category_id=str(commission.category_id),
        rate=commission.rate,
        description=commission.description,
    )


@commission_router.get("", response_model=list[CommissionResponse])
async def list_commissions() -> list[CommissionResponse]:
    return [_commission_response(c) for c in current_domain.repository_for(Commission).list_all()]


@commission_router.put("/{category_id}", response_model=CommissionResponse)
async def set_commission(
    category_id: str, body: SetCommissionRequest, actor: Actor = Depends(require_admin)
) -> CommissionResponse:
    command = SetCommission(category_id=category_id, rate=body.rate, description=body.description)
    commission_id = current_domain.process(command, asynchronous=False)
    return _commission_response(current_domain.repository_for(Commission).get(commission_id))


@commission_router.delete("/{category_id}", response_model=StatusResponse)
async def remove_commission(category_id: str, actor: Actor = Depends(require_admin)) -> StatusResponse:
    current_domain.process(RemoveCommission(category_id=category_id), asynchronous=False)
    return StatusResponse(status="removed")


@commission_router.post("/bulk", response_model=list[CommissionResponse])
async def set_commissions_in_bulk(
    body: BulkCommissionRequest, actor: Actor = Depends(require_admin)
) -> list[CommissionResponse]:
    command = SetCommissionsInBulk(entries=json.dumps([e.model_dump() for e in body.entries]))
    ids = current_domain.process(command, asynchronous=False)
    repo = current_domain.repository_for(Commission)
    return [_commission_response(repo.get(commission_id)) for commission_id in ids]
