"""Runtime settings read from the environment.

Protean's own configuration (databases, brokers, event store) lives in
``domain.toml``. Payment and wallet settings are plain environment variables
because they carry secrets and differ per deployment.
"""

import os
from dataclasses import dataclass

import structlog

from marketplace.errors import ConfigurationError

logger = structlog.get_logger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def current_env() -> str:
    return os.environ.get("PROTEAN_ENV", "development").lower()


@dataclass(frozen=True)
class PaymentSettings:
    """Settings for the external payment provider and its bypass mode."""

    bypass: bool = False
    merchant_id: str = ""
    password: str = ""
    secret: str = ""
    return_url: str = ""
    sandbox: bool = True
    timeout_seconds: float = 5.0
    currency: str = "PKR"
    environment: str = "development"

    def __post_init__(self) -> None:
        if self.bypass and self.environment == "production":
            raise ConfigurationError(
                "Payment bypass mode cannot be enabled in production",
                environment=self.environment,
            )
        if not self.bypass and self.environment == "production":
            missing = [
                name
                for name, value in (
                    ("JAZZCASH_MERCHANT_ID", self.merchant_id),
                    ("JAZZCASH_PASSWORD", self.password),
                    ("JAZZCASH_SECRET", self.secret),
                )
                if not value
            ]
            if missing:
                raise ConfigurationError(
                    "Payment provider configuration incomplete",
                    missing=missing,
                )
        if self.timeout_seconds <= 0:
            raise ConfigurationError("Payment provider timeout must be positive")

    @classmethod
    def from_env(cls) -> "PaymentSettings":
        settings = cls(
            bypass=_flag("PAYMENT_BYPASS"),
            merchant_id=os.environ.get("JAZZCASH_MERCHANT_ID", ""),
            password=os.environ.get("JAZZCASH_PASSWORD", ""),
            secret=os.environ.get("JAZZCASH_SECRET", ""),
            return_url=os.environ.get("JAZZCASH_RETURN_URL", ""),
            sandbox=_flag("JAZZCASH_SANDBOX", default=current_env() != "production"),
            timeout_seconds=float(os.environ.get("JAZZCASH_TIMEOUT_SECONDS", "5")),
            currency=os.environ.get("PAYMENT_CURRENCY", "PKR"),
            environment=current_env(),
        )
        if settings.bypass:
            logger.warning("payment_bypass_enabled", environment=settings.environment)
        return settings


@dataclass(frozen=True)
class WalletSettings:
    hold_days: int = 7

    def __post_init__(self) -> None:
        if self.hold_days < 0:
            raise ConfigurationError("Wallet hold window cannot be negative")

    @classmethod
    def from_env(cls) -> "WalletSettings":
        return cls(hold_days=int(os.environ.get("WALLET_HOLD_DAYS", "7")))
