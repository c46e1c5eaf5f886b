"""Category classification for fee-base exclusion."""

import logging
from typing import Iterable, Optional

from propledger.domain.entities import Category, Project, SystemRole

logger = logging.getLogger(__name__)

# Categories excluded from a project's PM fee base when the project has no
# explicit exclusion list of its own.
LEGACY_EXCLUDED_ROLES = (
    SystemRole.BROKER_FEE,
    SystemRole.REBATE,
    SystemRole.OWNER_PAYOUT,
    SystemRole.PM_COST,
    SystemRole.CUSTOMER_DISCOUNT,
    SystemRole.FLOOR_DISCOUNT,
    SystemRole.LUMP_SUM_DISCOUNT,
    SystemRole.MISC_DISCOUNT,
)

LEGACY_EXCLUDED_NAMES = tuple(role.value for role in LEGACY_EXCLUDED_ROLES)


class CategoryClassifier:
    """Resolve system roles and fee-base exclusion sets for categories."""

    def __init__(self, categories: Iterable[Category]):
        """Initialize classifier.

        Args:
            categories: The full category list
        """
        self.categories = tuple(categories)
        self._by_name = {}
        for category in self.categories:
            self._by_name.setdefault(category.name, category)

    def role_of(self, category: Category) -> Optional[SystemRole]:
        """System role of a category.

        An explicit role tag wins. Untagged categories are matched by exact
        name, so a renamed untagged category loses its role.
        """
        if category.role is not None:
            return category.role
        try:
            return SystemRole(category.name)
        except ValueError:
            return None

    def find_by_role(self, role: SystemRole) -> Optional[Category]:
        """First category carrying a role, by tag first and name second."""
        for category in self.categories:
            if category.role is role:
                return category
        category = self._by_name.get(role.value)
        if category is not None and category.role is None:
            return category
        return None

    def id_for_role(self, role: SystemRole) -> Optional[str]:
        category = self.find_by_role(role)
        return category.id if category is not None else None

    def pm_cost_category_id(self) -> Optional[str]:
        return self.id_for_role(SystemRole.PM_COST)

    def legacy_default_ids(self) -> frozenset[str]:
        """Category ids of the legacy exclusion list present in this category set."""
        ids = set()
        for role in LEGACY_EXCLUDED_ROLES:
            if role is SystemRole.PM_COST:
                continue
            category_id = self.id_for_role(role)
            if category_id is not None:
                ids.add(category_id)
        return frozenset(ids)

    def excluded_category_ids(self, project: Optional[Project]) -> frozenset[str]:
        """Categories excluded from a project's fee base.

        The project's own exclusion list is used when it has one, the legacy
        default list otherwise. The PM cost category is always added so a
        fee is never charged on the fee itself.
        """
        config = project.pm_config if project is not None else None
        if config is not None and config.excluded_category_ids:
            excluded = set(config.excluded_category_ids)
        else:
            excluded = set(self.legacy_default_ids())
            logger.debug(
                "Project %s has no exclusion list, using %d legacy categories",
                project.id if project is not None else None,
                len(excluded),
            )

        pm_cost_id = self.pm_cost_category_id()
        if pm_cost_id is not None:
            excluded.add(pm_cost_id)
        return frozenset(excluded)
