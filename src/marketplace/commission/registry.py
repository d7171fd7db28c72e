"""CommissionRegistry — category → rate lookup, 0 when nothing is configured."""

from protean.utils.globals import current_domain

from marketplace.commission.commission import Commission

DEFAULT_RATE = 0.0


class CommissionRegistry:
    def __init__(self, repository=None):
        self._repository = repository
        self._rates: dict[str, float] = {}

    @property
    def repository(self):
        if self._repository is None:
            self._repository = current_domain.repository_for(Commission)
        return self._repository

    def rate_for(self, category_id) -> float:
        if not category_id:
            return DEFAULT_RATE
        key = str(category_id)
        if key not in self._rates:
            commission = self.repository.find_by_category(key)
            self._rates[key] = commission.rate if commission else DEFAULT_RATE
        return self._rates[key]
