"""Commission administration — set, remove and bulk-set category rates."""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.commission.commission import Commission
from marketplace.domain import marketplace
from marketplace.errors import NotFoundError

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Commission")
class SetCommission:
    """Create or update the commission rate of a category."""

    category_id = Identifier(required=True)
    rate = Float(required=True)
    description = String(max_length=500)


@marketplace.command(part_of="Commission")
class RemoveCommission:
    category_id = Identifier(required=True)


@marketplace.command(part_of="Commission")
class SetCommissionsInBulk:
    entries = Text(required=True)  # JSON: list of {category_id, rate, description}


def _upsert(repo, category_id, rate, description=None) -> Commission:
    existing = repo.find_by_category(category_id)
    if existing is None:
        commission = Commission.create(category_id=category_id, rate=rate, description=description)
    else:
        commission = existing
        commission.change_rate(rate, description=description)
    repo.add(commission)
    return commission


@marketplace.command_handler(part_of=Commission)
class CommissionCommandHandler:
    @handle(SetCommission)
    def set_commission(self, command):
        repo = current_domain.repository_for(Commission)
        commission = _upsert(repo, str(command.category_id), command.rate, command.description)
        logger.info("commission_set", category_id=str(command.category_id), rate=command.rate)
        return str(commission.id)

    @handle(RemoveCommission)
    def remove_commission(self, command):
        repo = current_domain.repository_for(Commission)
        commission = repo.find_by_category(str(command.category_id))
        if commission is None:
            raise NotFoundError(
                f"No commission configured for category {command.category_id}",
                category_id=str(command.category_id),
            )
        repo._dao.delete(commission)
        logger.info("commission_removed", category_id=str(command.category_id))

    @handle(SetCommissionsInBulk)
    def set_commissions_in_bulk(self, command):
        entries = json.loads(command.entries) if isinstance(command.entries, str) else command.entries
        if not entries:
            raise ValidationError({"entries": ["At least one commission entry is required"]})

        seen = set()
        for entry in entries:
            category_id = str(entry["category_id"])
            if category_id in seen:
                raise ValidationError({"entries": [f"Category {category_id} appears more than once"]})
            seen.add(category_id)

        repo = current_domain.repository_for(Commission)
        ids = [
            str(_upsert(repo, str(entry["category_id"]), entry["rate"], entry.get("description")).id)
            for entry in entries
        ]
        logger.info("commissions_set_in_bulk", count=len(ids))
        return ids
