"""Derived category and account balances."""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from propledger.domain.entities import Transaction, TransactionType
from propledger.domain.resolver import EntityResolver
from propledger.utils.amount_parser import ZERO, coerce_amount
from propledger.utils.date_parser import DateLike, in_range

if TYPE_CHECKING:
    from propledger.store.state import AppState

logger = logging.getLogger(__name__)


class BalanceService:
    """Service deriving category and account balances from transactions.

    Balances are never stored; they are summed from the snapshot each time.
    """

    def __init__(self, state: AppState):
        """Initialize balance service.

        Args:
            state: Application state snapshot
        """
        self.state = state
        self.resolver = EntityResolver(state)

    def get_filtered_transactions(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        project_id: Optional[str] = None,
        include_transfers: bool = False,
    ) -> list[Transaction]:
        """Get transactions in a day range, optionally for one project."""
        transactions = []
        for txn in self.state.transactions:
            if not in_range(txn.date, start_date, end_date):
                continue
            if txn.type is TransactionType.TRANSFER and not include_transfers:
                continue
            if project_id is not None and self.resolver.project_id_for(txn) != project_id:
                continue
            transactions.append(txn)
        return transactions

    def get_category_tree(self) -> list[dict]:
        """Get full category tree.

        Returns:
            List of root category dicts with nested ``children``. A category
            whose parent is missing is treated as a root.
        """
        nodes = {
            c.id: {
                "id": c.id,
                "name": c.name,
                "category_type": c.type,
                "parent_id": c.parent_id,
                "children": [],
            }
            for c in self.state.categories
        }
        roots = []
        for node in nodes.values():
            parent = nodes.get(node["parent_id"]) if node["parent_id"] else None
            if parent is None:
                roots.append(node)
            else:
                parent["children"].append(node)
        return roots

    def build_descendant_map(self, category_tree: list[dict]) -> dict[str, set[str]]:
        """Build map of category IDs to descendant ID sets."""
        descendant_map: dict[str, set[str]] = {}

        def collect_descendants(node: dict) -> set[str]:
            descendants = {node["id"]}
            for child in node.get("children", []):
                descendants.update(collect_descendants(child))
            descendant_map[node["id"]] = descendants
            return descendants

        for root in category_tree or []:
            collect_descendants(root)

        return descendant_map

    def category_balances(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        project_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Totals per category, each including all of its descendants.

        Bill payments split into expense items count against the item
        categories.

        Returns:
            One dict per category in tree order with ``category_id``,
            ``category_name``, ``category_type``, ``depth``, ``own_total``,
            ``total`` and ``count``
        """
        transactions = self.get_filtered_transactions(start_date, end_date, project_id)
        own: dict[Optional[str], Decimal] = defaultdict(lambda: ZERO)
        counts: dict[Optional[str], int] = defaultdict(int)
        expanded_bills: set[str] = set()

        for txn in transactions:
            bill = self.resolver.bill(txn.bill_id)
            if bill is not None and bill.expense_items:
                if bill.id in expanded_bills:
                    continue
                expanded_bills.add(bill.id)
                for item in bill.expense_items:
                    own[item.category_id] += coerce_amount(item.net_value, f"(bill {bill.id})")
                    counts[item.category_id] += 1
                continue
            category_id = self.resolver.category_id_for(txn)
            own[category_id] += coerce_amount(txn.amount, f"(transaction {txn.id})")
            counts[category_id] += 1

        category_tree = self.get_category_tree()
        descendant_map = self.build_descendant_map(category_tree)

        results: list[dict[str, Any]] = []

        def visit(node: dict, depth: int) -> None:
            descendants = descendant_map.get(node["id"], {node["id"]})
            results.append(
                {
                    "category_id": node["id"],
                    "category_name": node["name"],
                    "category_type": node["category_type"],
                    "depth": depth,
                    "own_total": own.get(node["id"], ZERO),
                    "total": sum((own.get(d, ZERO) for d in descendants), ZERO),
                    "count": sum(counts.get(d, 0) for d in descendants),
                }
            )
            for child in sorted(node["children"], key=lambda n: n["name"].lower()):
                visit(child, depth + 1)

        for root in sorted(category_tree, key=lambda n: n["name"].lower()):
            visit(root, 0)

        known = set(descendant_map)
        uncategorized = [cid for cid in own if cid not in known]
        if uncategorized:
            results.append(
                {
                    "category_id": None,
                    "category_name": "Uncategorized",
                    "category_type": None,
                    "depth": 0,
                    "own_total": sum((own[c] for c in uncategorized), ZERO),
                    "total": sum((own[c] for c in uncategorized), ZERO),
                    "count": sum(counts[c] for c in uncategorized),
                }
            )
        return results

    def account_balances(
        self, end_date: Optional[DateLike] = None
    ) -> dict[str, Decimal]:
        """Balance of every account as of a day.

        Income, loans received and loans collected add to their account.
        Expenses, loans given and loan repayments subtract. Transfers move
        the amount from one account to the other, and loans without a
        subtype are skipped.
        """
        balances: dict[str, Decimal] = {a.id: ZERO for a in self.state.accounts}
        for txn in self.get_filtered_transactions(end_date=end_date, include_transfers=True):
            amount = coerce_amount(txn.amount, f"(transaction {txn.id})")
            if txn.type is TransactionType.TRANSFER:
                if txn.from_account_id:
                    balances[txn.from_account_id] = balances.get(txn.from_account_id, ZERO) - amount
                if txn.to_account_id:
                    balances[txn.to_account_id] = balances.get(txn.to_account_id, ZERO) + amount
                continue
            if not txn.account_id:
                continue
            if txn.type is TransactionType.LOAN:
                if txn.subtype is None:
                    logger.debug("Skipping loan %s without subtype", txn.id)
                    continue
                sign = 1 if txn.subtype.is_inflow else -1
            else:
                sign = 1 if txn.type is TransactionType.INCOME else -1
            balances[txn.account_id] = balances.get(txn.account_id, ZERO) + sign * amount
        return balances

