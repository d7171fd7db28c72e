"""Marketplace bounded context — multi-seller checkout and settlement.

Converts multi-seller carts into per-seller orders, captures payments through
cash on delivery or an external signed-field gateway, keeps per-seller wallets
with commission holds and releases, and processes seller withdrawals.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
