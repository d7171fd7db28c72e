"""Order number generation.

Numbers look like ``ORD-20261018-4KZ9QX``: the UTC date and six random base36
characters. Uniqueness is optimistic: a candidate that collides with an
existing order, or with a number already handed out by the same generator, is
discarded and a fresh one drawn, a bounded number of times.
"""

import secrets
import string
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError

logger = structlog.get_logger(__name__)

_ALPHABET = string.digits + string.ascii_uppercase
MAX_ATTEMPTS = 5


def random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class OrderNumberGenerator:
    def __init__(self, exists=None, suffix=random_suffix, max_attempts: int = MAX_ATTEMPTS):
        """
        Args:
            exists: Callable telling whether an order number is already taken.
            suffix: Callable producing the random part, replaceable in tests.
        """
        self._exists = exists or (lambda number: False)
        self._suffix = suffix
        self._max_attempts = max_attempts
        self._issued: set[str] = set()

    def next(self, now: datetime | None = None) -> str:
        now = now or datetime.now(UTC)
        for attempt in range(1, self._max_attempts + 1):
            candidate = f"ORD-{now:%Y%m%d}-{self._suffix()}"
            if candidate in self._issued or self._exists(candidate):
                logger.warning("order_number_collision", candidate=candidate, attempt=attempt)
                continue
            self._issued.add(candidate)
            return candidate

        raise ValidationError(
            {"order_number": [f"Could not generate a unique order number after {self._max_attempts} attempts"]}
        )
