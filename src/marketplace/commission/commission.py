"""Commission aggregate — the platform's cut per product category."""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Commission")
class CommissionSet:
    __version__ = 1

    commission_id: Identifier(required=True)
    category_id: Identifier(required=True)
    rate: Float(required=True)
    previous_rate: Float()


@marketplace.aggregate(limit=None)
class Commission:
    category_id = Identifier(required=True)
    rate = Float(required=True, min_value=0.0, max_value=1.0)
    description = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def rate_must_be_a_fraction(self):
        if self.rate is not None and not 0.0 <= self.rate <= 1.0:
            raise ValidationError({"rate": ["Commission rate must be between 0 and 1"]})

    @classmethod
    def create(cls, category_id, rate, description=None):
        now = datetime.now(UTC)
        commission = cls(
            category_id=category_id,
            rate=rate,
            description=description,
            created_at=now,
            updated_at=now,
        )
        commission.raise_(
            CommissionSet(
                commission_id=str(commission.id),
                category_id=str(category_id),
                rate=rate,
            )
        )
        return commission

    def change_rate(self, rate, description=None):
        previous = self.rate
        self.rate = rate
        if description is not None:
            self.description = description
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CommissionSet(
                commission_id=str(self.id),
                category_id=str(self.category_id),
                rate=rate,
                previous_rate=previous,
            )
        )


@marketplace.repository(part_of=Commission)
class CommissionRepository:
    def find_by_category(self, category_id) -> Commission | None:
        results = self._dao.query.filter(category_id=str(category_id)).all()
        return results.first

    def list_all(self) -> list[Commission]:
        return self._dao.query.order_by("category_id").all().items
