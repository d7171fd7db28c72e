"""CheckoutOrchestrator — turns a cart into seller orders in one unit of work.

The orchestrator is built per command with the gateway variant for the chosen
payment method. It never decides on payment flags itself: it asks the gateway
whether order creation waits for a provider callback.

Sequence for an immediate checkout (cash on delivery, bypass):

1. resolve every cart line against the catalogue
2. check stock for the whole cart before anything changes
3. per seller: order number, Order + items, Payment + transaction, shipment
4. shipping address on the first order only
5. decrement stock, count sales
6. clear and convert the cart

For a deferred checkout only steps 1 and 2 run, followed by a
CheckoutSession; ``settle`` runs steps 2 to 6 once the provider confirms.
"""

from dataclasses import dataclass, field
from uuid import uuid4

import structlog
from protean.utils.globals import current_domain

from marketplace.cart.cart import CartStatus, ShoppingCart
from marketplace.catalogue.stock import StockLedger
from marketplace.checkout.session import CheckoutSession
from marketplace.errors import EmptyCartError
from marketplace.order.numbering import OrderNumberGenerator
from marketplace.order.order import Order, ShippingAddress, money
from marketplace.order.splitter import OrderSplitter, ResolvedLine
from marketplace.payment.gateway.port import CallbackOutcome, PaymentGateway
from marketplace.payment.payment import Payment, PaymentMethod, PaymentStatus

logger = structlog.get_logger(__name__)


@dataclass
class CheckoutResult:
    checkout_id: str
    txn_ref_no: str
    orders: list[Order] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    payment_url: str | None = None
    fields: dict = field(default_factory=dict)

    @property
    def deferred(self) -> bool:
        return self.payment_url is not None


class CheckoutOrchestrator:
    def __init__(
        self,
        gateway: PaymentGateway,
        stock: StockLedger | None = None,
        splitter: OrderSplitter | None = None,
        numbers: OrderNumberGenerator | None = None,
        currency: str = "PKR",
    ):
        self.gateway = gateway
        self.stock = stock or StockLedger()
        self.splitter = splitter or OrderSplitter()
        self.numbers = numbers or OrderNumberGenerator(exists=self._order_number_taken)
        self.currency = currency

    @staticmethod
    def _order_number_taken(number: str) -> bool:
        return current_domain.repository_for(Order).find_by_number(number) is not None

    # -------------------------------------------------------------------
    # Line resolution
    # -------------------------------------------------------------------
    def resolve(self, cart: ShoppingCart) -> list[ResolvedLine]:
        if CartStatus(cart.status) != CartStatus.ACTIVE or not cart.items:
            raise EmptyCartError({"cart": ["Cart is empty"]})

        lines = []
        for item in cart.items:
            product = self.stock.product(item.product_id)
            product.variant(item.variant_id)  # must still exist
            lines.append(
                ResolvedLine(
                    product_id=str(item.product_id),
                    variant_id=str(item.variant_id),
                    seller_id=product.attributed_seller_id,
                    category_id=str(product.category_id) if product.category_id else None,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
            )
        return lines

    def _check_stock(self, lines: list[ResolvedLine]) -> None:
        self.stock.ensure_available((line.product_id, line.variant_id, line.quantity) for line in lines)

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    def checkout(self, cart: ShoppingCart, address: dict | None = None) -> CheckoutResult:
        lines = self.resolve(cart)
        self._check_stock(lines)

        amount = money(sum(line.line_total for line in lines))
        txn_ref_no = self.gateway.new_reference()
        initiation = self.gateway.initiate(
            txn_ref_no=txn_ref_no,
            amount=amount,
            currency=self.currency,
            bill_reference=str(cart.id)[:20],
            description=f"Marketplace order of {len(lines)} item(s)",
        )

        if initiation.defers_order_creation:
            session = CheckoutSession.initiate(
                txn_ref_no=txn_ref_no,
                cart_id=str(cart.id),
                buyer_id=str(cart.buyer_id),
                payment_method=self.gateway.method,
                amount=amount,
                currency=self.currency,
                lines=[{"seller_id": line.seller_id, **line.as_order_line()} for line in lines],
                shipping_address=address,
            )
            current_domain.repository_for(CheckoutSession).add(session)
            logger.info("checkout_deferred", checkout_id=str(session.id), txn_ref_no=txn_ref_no, amount=amount)
            return CheckoutResult(
                checkout_id=str(session.id),
                txn_ref_no=txn_ref_no,
                payment_url=initiation.payment_url,
                fields=initiation.fields,
            )

        checkout_id = str(uuid4())
        result = self._place(
            checkout_id=checkout_id,
            buyer_id=str(cart.buyer_id),
            lines=lines,
            address=address,
            payment_status=initiation.payment_status,
            txn_ref_no=txn_ref_no,
            response_code=initiation.response_code,
            response_message=initiation.response_message,
        )
        self._convert_cart(cart, checkout_id)
        return result

    def settle(self, session: CheckoutSession, outcome: CallbackOutcome) -> CheckoutResult:
        """Create the orders of a deferred checkout whose payment completed."""
        lines = [ResolvedLine(**data) for data in session.line_data]
        self._check_stock(lines)

        result = self._place(
            checkout_id=str(session.id),
            buyer_id=str(session.buyer_id),
            lines=lines,
            address=session.address_data,
            payment_status=PaymentStatus.COMPLETED.value,
            txn_ref_no=session.txn_ref_no,
            response_code=outcome.response_code,
            response_message=outcome.response_message,
        )

        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.get(session.cart_id)
        if CartStatus(cart.status) == CartStatus.ACTIVE:
            self._convert_cart(cart, str(session.id))
        return result

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _place(
        self,
        checkout_id,
        buyer_id,
        lines,
        address,
        payment_status,
        txn_ref_no,
        response_code=None,
        response_message=None,
    ) -> CheckoutResult:
        method = self.gateway.method
        shipping_address = ShippingAddress(**address) if address else None

        orders, payments = [], []
        for index, bucket in enumerate(self.splitter.split(lines)):
            number = self.numbers.next()
            shipment = Order.cash_on_delivery_shipment(number) if method == PaymentMethod.CASH_ON_DELIVERY.value else None
            order = Order.place(
                order_number=number,
                checkout_id=checkout_id,
                buyer_id=buyer_id,
                seller_id=bucket.seller_id,
                lines=[line.as_order_line() for line in bucket.lines],
                payment_method=method,
                currency=self.currency,
                shipping_address=shipping_address if index == 0 else None,
                shipment=shipment,
            )
            payment = Payment.record(
                order_id=str(order.id),
                buyer_id=buyer_id,
                method=method,
                amount=order.amount,
                currency=self.currency,
                status=payment_status,
                txn_ref_no=txn_ref_no,
                response_code=response_code,
                response_message=response_message,
            )
            orders.append(order)
            payments.append(payment)

        for line in lines:
            self.stock.reserve_and_decrement(line.product_id, line.variant_id, line.quantity)

        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)
        for order, payment in zip(orders, payments, strict=True):
            order_repo.add(order)
            payment_repo.add(payment)
        self.stock.flush()

        logger.info(
            "checkout_completed",
            checkout_id=checkout_id,
            orders=len(orders),
            amount=money(sum(o.amount for o in orders)),
            payment_method=method,
        )
        return CheckoutResult(checkout_id=checkout_id, txn_ref_no=txn_ref_no, orders=orders, payments=payments)

    def _convert_cart(self, cart: ShoppingCart, checkout_id: str) -> None:
        cart.convert(checkout_id)
        current_domain.repository_for(ShoppingCart).add(cart)
