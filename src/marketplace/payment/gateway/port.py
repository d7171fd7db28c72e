"""Payment gateway port (abstract interface).

Each payment method the marketplace accepts is one gateway variant with its
own request and callback handling. Checkout asks the variant whether order
creation has to wait for a provider callback instead of branching on flags.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class OutcomeStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class PaymentInitiation:
    """Result of starting a payment for a checkout."""

    txn_ref_no: str
    defers_order_creation: bool
    payment_status: str
    payment_url: str | None = None
    fields: dict = field(default_factory=dict)
    response_code: str | None = None
    response_message: str | None = None


@dataclass(frozen=True)
class CallbackOutcome:
    """A verified provider callback, mapped onto the marketplace's statuses."""

    status: OutcomeStatus
    txn_ref_no: str
    amount: float
    response_code: str
    response_message: str


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    method: str

    @abstractmethod
    def new_reference(self) -> str:
        """Return a fresh transaction reference for this method."""
        ...

    @abstractmethod
    def initiate(
        self,
        txn_ref_no: str,
        amount: float,
        currency: str,
        bill_reference: str,
        description: str,
    ) -> PaymentInitiation:
        """Start a payment. Raises PaymentInitiationError when it cannot."""
        ...

    @abstractmethod
    def verify_callback(self, fields: dict) -> CallbackOutcome:
        """Verify provider-signed callback fields. Raises PaymentVerificationError."""
        ...

    @abstractmethod
    def check_status(self, txn_ref_no: str) -> CallbackOutcome:
        """Ask the provider for the current status of a transaction."""
        ...
