"""Project-management fee accrual, allocation cycles and PM configuration."""

from __future__ import annotations

import calendar
import logging
import math
import re
from dataclasses import replace
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Callable, Optional, Union

from dateutil.relativedelta import relativedelta

from propledger.domain.classifier import CategoryClassifier
from propledger.domain.entities import (
    Bill,
    LedgerEntry,
    LedgerRow,
    PMAllocation,
    PMConfig,
    PMFrequency,
    PendingCycle,
    Project,
    ProjectFinancials,
    Transaction,
    TransactionType,
)
from propledger.domain.errors import (
    NotFoundError,
    ValidationError,
    invalid_fee_rate,
    project_not_found,
)
from propledger.domain.ledger import aggregate
from propledger.domain.resolver import EntityResolver
from propledger.store.actions import UpdateProject
from propledger.utils.amount_parser import ZERO, coerce_amount
from propledger.utils.date_parser import DateLike, as_date, in_range

if TYPE_CHECKING:
    from propledger.store.base import StateStore
    from propledger.store.state import AppState

logger = logging.getLogger(__name__)

ALLOCATION_MARKER = "PM Fee Allocation"
PM_PAYMENT_KEYWORDS = ("pm fee", "pm payout")

CYCLE_PATTERN = re.compile(r"\[PM-ALLOC-([^\]]+)\]")
RANGE_PATTERN = re.compile(r"\[(\d{4}-\d{2}-\d{2})\] to \[(\d{4}-\d{2}-\d{2})\]")

# Allocations with less than this left to pay count as settled
SETTLED_TOLERANCE = Decimal("0.01")
CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


# Cycles


def cycle_id(day: DateLike, frequency: PMFrequency) -> str:
    """Identifier of the fee cycle containing a day.

    Yearly cycles are "2024", monthly "2024-01" and weekly "2024-W03",
    where week 1 is the seven days starting on January 1st.
    """
    day = as_date(day)
    if frequency is PMFrequency.YEARLY:
        return f"{day.year}"
    if frequency is PMFrequency.MONTHLY:
        return f"{day.year}-{day.month:02d}"
    week = (day - date(day.year, 1, 1)).days // 7 + 1
    return f"{day.year}-W{week:02d}"


def cycle_label(cycle: str, frequency: PMFrequency) -> str:
    """Display label of a cycle: "2024", "January 2024" or "Week 3, 2024"."""
    if frequency is PMFrequency.YEARLY:
        return cycle
    if frequency is PMFrequency.MONTHLY:
        year, month = cycle.split("-")
        return f"{calendar.month_name[int(month)]} {year}"
    year, week = cycle.split("-W")
    return f"Week {int(week)}, {year}"


def cycle_range(cycle: str, frequency: PMFrequency) -> tuple[date, date]:
    """First and last day of a cycle.

    Raises:
        ValueError: If the cycle id does not match the frequency
    """
    try:
        if frequency is PMFrequency.YEARLY:
            year = int(cycle)
            return date(year, 1, 1), date(year, 12, 31)
        if frequency is PMFrequency.MONTHLY:
            year, month = (int(part) for part in cycle.split("-"))
            last_day = calendar.monthrange(year, month)[1]
            return date(year, month, 1), date(year, month, last_day)
        year, week = (int(part) for part in cycle.split("-W"))
    except ValueError as e:
        raise ValueError(f"Invalid {frequency.value.lower()} cycle '{cycle}': {e}") from e
    start = date(year, 1, 1) + timedelta(days=(week - 1) * 7)
    return start, start + timedelta(days=6)


def next_cycle_start(day: date, frequency: PMFrequency) -> date:
    """Day from which the cycle after the one containing ``day`` is looked up."""
    if frequency is PMFrequency.YEARLY:
        return date(day.year + 1, 1, 1)
    if frequency is PMFrequency.MONTHLY:
        return day.replace(day=1) + relativedelta(months=1)
    return day + timedelta(days=7)


def allocation_description(cycle: str, frequency: PMFrequency) -> str:
    """Description written on an allocation bill; ``allocations`` parses it back."""
    start, end = cycle_range(cycle, frequency)
    return (
        f"{ALLOCATION_MARKER} - [PM-ALLOC-{cycle}] - {cycle_label(cycle, frequency)}"
        f" - [{start.isoformat()}] to [{end.isoformat()}]"
    )


def mentions_pm_payment(description: Optional[str]) -> bool:
    text = (description or "").lower()
    return any(keyword in text for keyword in PM_PAYMENT_KEYWORDS)


def is_allocation_bill(bill: Optional[Bill]) -> bool:
    return bill is not None and ALLOCATION_MARKER in (bill.description or "")


def round_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class FeeAccrualService:
    """Service computing a project's PM fee position from a state snapshot."""

    def __init__(self, state: AppState):
        """Initialize fee accrual service.

        Args:
            state: Application state snapshot
        """
        self.state = state
        self.resolver = EntityResolver(state)
        self.classifier = CategoryClassifier(state.categories)

    def get_project(self, project_id: str) -> Project:
        """Get a project by ID.

        Raises:
            NotFoundError: If the project does not exist
        """
        project = self.state.get_project(project_id)
        if project is None:
            raise NotFoundError(project_not_found(project_id))
        return project

    @staticmethod
    def config_of(project: Project) -> PMConfig:
        return project.pm_config if project.pm_config is not None else PMConfig()

    def _project_expenses(self, project_id: str) -> list[Transaction]:
        return [
            tx
            for tx in self.state.transactions
            if tx.type is TransactionType.EXPENSE
            and self.resolver.project_id_for(tx) == project_id
        ]

    def _expense_lines(
        self, transactions: list[Transaction]
    ) -> list[tuple[Transaction, Optional[str], Decimal]]:
        """Split transactions into (transaction, category, amount) lines.

        A payment on a bill with expense items is replaced by the bill's
        items, once per bill; later payments on the same bill add nothing.
        """
        lines = []
        expanded_bills: set[str] = set()
        for tx in transactions:
            bill = self.resolver.bill(tx.bill_id)
            if bill is not None and bill.expense_items:
                if bill.id in expanded_bills:
                    continue
                expanded_bills.add(bill.id)
                for item in bill.expense_items:
                    if not item.category_id:
                        continue
                    lines.append(
                        (tx, item.category_id, coerce_amount(item.net_value, f"(bill {bill.id})"))
                    )
                continue
            lines.append(
                (tx, self.resolver.category_id_for(tx), coerce_amount(tx.amount, f"(transaction {tx.id})"))
            )
        return lines

    def compute_financials(
        self, project_id: str, as_of: Optional[DateLike] = None
    ) -> ProjectFinancials:
        """Compute the fee accrual position of a project.

        Args:
            project_id: Project ID
            as_of: Only count transactions dated on or before this day

        Returns:
            ProjectFinancials with expense totals, accrued fee and payments

        Raises:
            NotFoundError: If the project does not exist
        """
        project = self.get_project(project_id)
        config = self.config_of(project)
        excluded = self.classifier.excluded_category_ids(project)
        pm_cost_id = self.classifier.pm_cost_category_id()

        expenses = [
            tx for tx in self._project_expenses(project_id) if in_range(tx.date, None, as_of)
        ]

        total_expense = ZERO
        excluded_cost = ZERO
        paid = ZERO
        for tx, category_id, amount in self._expense_lines(expenses):
            if pm_cost_id is not None and category_id == pm_cost_id and not tx.is_system:
                paid += amount
                continue
            total_expense += amount
            if category_id in excluded:
                excluded_cost += amount

        for tx in self.state.transactions:
            if (
                tx.type is TransactionType.TRANSFER
                and tx.project_id == project_id
                and not tx.is_system
                and mentions_pm_payment(tx.description)
                and in_range(tx.date, None, as_of)
            ):
                paid += coerce_amount(tx.amount, f"(transaction {tx.id})")

        net_base = total_expense - excluded_cost
        accrued = net_base * config.rate / HUNDRED

        logger.debug(
            "Project %s: expense=%s excluded=%s accrued=%s paid=%s",
            project_id,
            total_expense,
            excluded_cost,
            accrued,
            paid,
        )
        return ProjectFinancials(
            total_expense=total_expense,
            excluded_cost=excluded_cost,
            net_base=net_base,
            accrued=accrued,
            paid=paid,
            balance=accrued - paid,
        )

    def expenses_in_range(
        self, project_id: str, start_date: DateLike, end_date: DateLike
    ) -> Decimal:
        """Fee base of a project over an inclusive day range.

        Excluded categories are left out; PM cost is always excluded.
        """
        project = self.get_project(project_id)
        excluded = self.classifier.excluded_category_ids(project)
        expenses = [
            tx
            for tx in self._project_expenses(project_id)
            if in_range(tx.date, start_date, end_date)
        ]
        return sum(
            (amount for _, category_id, amount in self._expense_lines(expenses)
             if category_id not in excluded),
            ZERO,
        )

    # Allocations

    def _allocation_bills(self, project_id: str):
        for bill in self.state.bills:
            if bill.project_id != project_id or not is_allocation_bill(bill):
                continue
            match = CYCLE_PATTERN.search(bill.description)
            if match is None:
                logger.warning("Allocation bill %s has no cycle marker", bill.id)
                continue
            yield bill, match.group(1)

    def allocations(self, project_id: str) -> list[PMAllocation]:
        """Allocations of a project, parsed from its allocation bills."""
        result = []
        for bill, cycle in self._allocation_bills(project_id):
            start, end = bill.issue_date, bill.issue_date
            dates = RANGE_PATTERN.search(bill.description)
            if dates is not None:
                start = date.fromisoformat(dates.group(1))
                end = date.fromisoformat(dates.group(2))
            result.append(
                PMAllocation(
                    cycle_id=cycle,
                    amount=coerce_amount(bill.amount, f"(bill {bill.id})"),
                    issue_date=bill.issue_date,
                    start_date=start,
                    end_date=end,
                    bill_id=bill.id,
                    paid_amount=coerce_amount(bill.paid_amount, f"(bill {bill.id})"),
                )
            )
        return result

    def has_allocation(self, project_id: str, cycle: str) -> bool:
        return any(c == cycle for _, c in self._allocation_bills(project_id))

    def unpaid_allocations(self, project_id: str) -> list[PMAllocation]:
        """Allocations with more than a cent still unpaid, by cycle."""
        unpaid = [a for a in self.allocations(project_id) if a.unpaid > SETTLED_TOLERANCE]
        return sorted(unpaid, key=lambda a: a.cycle_id)

    def payments(self, project_id: str) -> list[Transaction]:
        """Non-system transactions that pay the project's PM fee.

        Payments are expenses against an allocation bill, legacy PM cost
        expenses mentioning a PM fee, and PM fee transfers.
        """
        pm_cost_id = self.classifier.pm_cost_category_id()
        found = []
        for tx in self.state.transactions:
            if tx.project_id != project_id or tx.is_system:
                continue
            if tx.type is TransactionType.EXPENSE and tx.bill_id:
                if is_allocation_bill(self.resolver.bill(tx.bill_id)):
                    found.append(tx)
            elif tx.type is TransactionType.EXPENSE and tx.category_id == pm_cost_id:
                if pm_cost_id is not None and mentions_pm_payment(tx.description):
                    found.append(tx)
            elif tx.type is TransactionType.TRANSFER and mentions_pm_payment(tx.description):
                found.append(tx)
        return found

    def pm_ledger(
        self,
        project_id: str,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        search: Optional[str] = None,
    ) -> list[LedgerRow]:
        """Allocations (debit) against payments (credit) with a running balance.

        Allocations come before payments on the same day.
        """
        project = self.get_project(project_id)
        frequency = self.config_of(project).frequency

        entries = []
        for allocation in self.allocations(project_id):
            entries.append(
                LedgerEntry(
                    date=allocation.issue_date,
                    debit=allocation.amount,
                    particulars=cycle_label(allocation.cycle_id, frequency),
                    party_id=project.id,
                    party_name=project.name,
                    priority=0,
                    source_id=allocation.bill_id,
                    extra={
                        "type": "Allocation",
                        "cycle": allocation.cycle_id,
                        "start_date": allocation.start_date,
                        "end_date": allocation.end_date,
                    },
                )
            )
        for tx in self.payments(project_id):
            match = CYCLE_PATTERN.search(tx.description or "")
            cycle = match.group(1) if match else ""
            particulars = f"{cycle_label(cycle, frequency)} (Payment)" if cycle else "Payment"
            entries.append(
                LedgerEntry(
                    date=tx.date,
                    credit=coerce_amount(tx.amount, f"(transaction {tx.id})"),
                    particulars=particulars,
                    party_id=project.id,
                    party_name=project.name,
                    priority=1,
                    source_id=tx.id,
                    extra={"type": "Payment", "cycle": cycle, "description": tx.description or ""},
                )
            )

        return aggregate(
            entries,
            start_date=start_date,
            end_date=end_date,
            search=search,
            search_fields=("particulars", "cycle", "description"),
        )

    def unallocated_amount(self, project_id: str, today: Optional[date] = None) -> Decimal:
        """Fee accrued so far in the current, not yet allocated, cycle.

        Returns zero when the project has no positive rate or the current
        cycle already has an allocation.
        """
        project = self.get_project(project_id)
        config = self.config_of(project)
        if config.rate <= ZERO:
            return ZERO
        today = today or date.today()

        current = cycle_id(today, config.frequency)
        if self.has_allocation(project_id, current):
            return ZERO
        start, end = cycle_range(current, config.frequency)
        if today < start:
            return ZERO

        base = self.expenses_in_range(project_id, start, min(today, end))
        return round_cents(base * config.rate / HUNDRED)

    def pending_cycles(self, project_id: str, today: Optional[date] = None) -> list[PendingCycle]:
        """Completed cycles without an allocation, with their proposed fee.

        Cycles run from the first fee-base expense of the project up to the
        last cycle ending on or before ``today``. Cycles whose fee does not
        exceed a cent are left out.
        """
        project = self.get_project(project_id)
        config = self.config_of(project)
        if config.rate <= ZERO:
            return []
        today = today or date.today()
        excluded = self.classifier.excluded_category_ids(project)

        fee_dates = [
            as_date(tx.date)
            for tx in self.state.transactions
            if tx.project_id == project_id
            and tx.type is TransactionType.EXPENSE
            and (not tx.category_id or tx.category_id not in excluded)
        ]
        if not fee_dates:
            return []

        pending = []
        seen: set[str] = set()
        current = min(fee_dates)
        while current <= today:
            cycle = cycle_id(current, config.frequency)
            start, end = cycle_range(cycle, config.frequency)
            if end <= today and cycle not in seen and not self.has_allocation(project_id, cycle):
                seen.add(cycle)
                base = self.expenses_in_range(project_id, start, end)
                amount = round_cents(base * config.rate / HUNDRED)
                if amount > SETTLED_TOLERANCE:
                    pending.append(
                        PendingCycle(
                            cycle_id=cycle,
                            label=cycle_label(cycle, config.frequency),
                            start_date=start,
                            end_date=end,
                            fee_base=base,
                            amount=amount,
                        )
                    )
            current = next_cycle_start(current, config.frequency)
        return pending


def parse_fee_rate(raw_rate: Union[str, int, float, Decimal]) -> Decimal:
    """Parse a PM fee rate entered by a user.

    Raises:
        ValidationError: If the rate is not a finite number of 0 or more
    """
    if isinstance(raw_rate, bool):
        raise ValidationError(invalid_fee_rate(raw_rate))
    if isinstance(raw_rate, float) and not math.isfinite(raw_rate):
        raise ValidationError(invalid_fee_rate(raw_rate))
    try:
        rate = Decimal(str(raw_rate).strip())
    except InvalidOperation:
        raise ValidationError(invalid_fee_rate(raw_rate))
    if not rate.is_finite() or rate < ZERO:
        raise ValidationError(invalid_fee_rate(raw_rate))
    return rate


class PMConfigService:
    """Service for editing a project's PM fee configuration."""

    def __init__(self, store: StateStore):
        """Initialize PM config service.

        Args:
            store: State store the updated project is dispatched on
        """
        self.store = store

    def update_config(
        self,
        project_id: str,
        rate: Union[str, int, float, Decimal],
        frequency: Optional[PMFrequency] = None,
        excluded_category_ids: Optional[tuple[str, ...]] = None,
        vendor_id: Optional[str] = None,
        confirm: Optional[Callable[[str], bool]] = None,
    ) -> bool:
        """Save a project's PM configuration.

        Settings left as None keep their current value, or the default for
        a project that has no configuration yet.

        Args:
            project_id: Project ID
            rate: Fee rate in percent
            frequency: Allocation cycle length
            excluded_category_ids: Categories excluded from the fee base
            vendor_id: Vendor allocation bills are raised against
            confirm: Asked before changing the configuration of a project
                that already has allocations or payments; returning False
                cancels the save

        Returns:
            True if the configuration was saved, False if cancelled

        Raises:
            ValidationError: If the rate is negative or not a number
            NotFoundError: If the project does not exist
        """
        parsed_rate = parse_fee_rate(rate)
        fees = FeeAccrualService(self.store.state)
        project = fees.get_project(project_id)
        current = fees.config_of(project)

        new_config = PMConfig(
            rate=parsed_rate,
            frequency=current.frequency if frequency is None else frequency,
            excluded_category_ids=(
                current.excluded_category_ids
                if excluded_category_ids is None
                else tuple(excluded_category_ids)
            ),
            vendor_id=current.vendor_id if vendor_id is None else vendor_id,
        )
        if project.pm_config == new_config:
            logger.debug("PM config of project %s unchanged", project_id)
            return True

        has_history = bool(fees.allocations(project_id) or fees.payments(project_id))
        if has_history and confirm is not None:
            message = (
                f"Project '{project.name}' already has PM fee allocations or payments. "
                "Changing the configuration only affects future cycles. Continue?"
            )
            if not confirm(message):
                logger.info("PM config change for project %s cancelled", project_id)
                return False

        self.store.dispatch(UpdateProject(replace(project, pm_config=new_config)))
        logger.info(
            "Updated PM config of project %s: rate=%s frequency=%s",
            project_id,
            parsed_rate,
            new_config.frequency.value,
        )
        return True
