"""Ledger report services.

Each report turns invoices, bills, transactions and agreement fees into
``LedgerEntry`` records and hands them to the ledger aggregator. Balances
are always accumulated in date order; ``sort_key``/``direction`` only
re-order the finished rows for display.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from propledger.domain.classifier import CategoryClassifier
from propledger.domain.entities import (
    ContactType,
    InvoiceType,
    LedgerEntry,
    LedgerRow,
    SortDirection,
    SystemRole,
    Transaction,
    TransactionType,
)
from propledger.domain.ledger import aggregate, sort_rows
from propledger.domain.resolver import UNKNOWN, EntityResolver
from propledger.utils.amount_parser import ZERO, coerce_amount
from propledger.utils.date_parser import DateLike

if TYPE_CHECKING:
    from propledger.store.state import AppState

logger = logging.getLogger(__name__)

TENANT_INVOICE_TYPES = (InvoiceType.RENTAL, InvoiceType.SERVICE_CHARGE)

# Expense categories whose name carries this marker are borne by the tenant
TENANT_EXPENSE_MARKER = "(Tenant)"


class VendorContext(str, Enum):
    """Which side of the business a vendor ledger covers."""

    ALL = "all"
    PROJECT = "project"
    RENTAL = "rental"


def _party_group(entry: LedgerEntry) -> tuple[str, str]:
    return (entry.party_name.lower(), entry.party_id or "")


class LedgerReportService:
    """Service building the ledger reports from a state snapshot."""

    def __init__(self, state: AppState):
        """Initialize report service.

        Args:
            state: Application state snapshot
        """
        self.state = state
        self.resolver = EntityResolver(state)
        self.classifier = CategoryClassifier(state.categories)

    def _finish(
        self,
        entries: list[LedgerEntry],
        start_date: Optional[DateLike],
        end_date: Optional[DateLike],
        group: bool,
        search: Optional[str],
        search_fields: tuple[str, ...],
        sort_key: str,
        direction: SortDirection,
        group_key: Callable[[LedgerEntry], object] = _party_group,
    ) -> list[LedgerRow]:
        rows = aggregate(
            entries,
            start_date=start_date,
            end_date=end_date,
            group_key=group_key if group else None,
            search=search,
            search_fields=search_fields,
        )
        # Grouped rows stay in party order unless another order is asked for
        if sort_key == "date" and direction is SortDirection.ASC:
            return rows
        return sort_rows(rows, sort_key, direction)

    def _is_tenant(self, contact_id: Optional[str]) -> bool:
        contact = self.resolver.contact(contact_id)
        return contact is not None and contact.type is ContactType.TENANT

    # Tenant ledger

    def tenant_ledger(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        tenant_id: Optional[str] = None,
        group_by_tenant: bool = False,
        search: Optional[str] = None,
        sort_key: str = "date",
        direction: SortDirection = SortDirection.ASC,
    ) -> list[LedgerRow]:
        """Rent and service-charge invoices (debit) against tenant payments (credit)."""
        entries: list[LedgerEntry] = []

        for inv in self.state.invoices:
            if inv.invoice_type not in TENANT_INVOICE_TYPES:
                continue
            if tenant_id is not None and inv.contact_id != tenant_id:
                continue
            entries.append(
                LedgerEntry(
                    date=inv.issue_date,
                    debit=inv.amount,
                    particulars=f"Invoice #{inv.number} ({inv.description or 'Rent'})",
                    party_id=inv.contact_id,
                    party_name=self.resolver.contact_name(inv.contact_id, "Tenant"),
                    source_id=inv.id,
                )
            )

        for tx in self.state.transactions:
            if tx.type is not TransactionType.INCOME or not tx.contact_id:
                continue
            if tenant_id is not None:
                if tx.contact_id != tenant_id:
                    continue
            elif not (self._is_tenant(tx.contact_id) or self._pays_tenant_invoice(tx)):
                continue
            entries.append(
                LedgerEntry(
                    date=tx.date,
                    credit=tx.amount,
                    particulars=tx.description or "Payment Received",
                    party_id=tx.contact_id,
                    party_name=self.resolver.contact_name(tx.contact_id, "Tenant"),
                    priority=1,
                    source_id=tx.id,
                )
            )

        return self._finish(
            entries,
            start_date,
            end_date,
            group=group_by_tenant,
            search=search,
            search_fields=("particulars", "party_name"),
            sort_key=sort_key,
            direction=direction,
        )

    def _pays_tenant_invoice(self, tx: Transaction) -> bool:
        # Payments of a deleted tenant still belong to the ledger when they
        # settle a rental invoice.
        invoice = self.resolver.invoice(tx.invoice_id)
        return invoice is not None and invoice.invoice_type in TENANT_INVOICE_TYPES

    # Vendor ledger

    def vendor_ledger(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        vendor_id: Optional[str] = None,
        building_id: Optional[str] = None,
        context: VendorContext = VendorContext.ALL,
        search: Optional[str] = None,
        sort_key: str = "date",
        direction: SortDirection = SortDirection.ASC,
    ) -> list[LedgerRow]:
        """Bills (amount owed, debit) against payments to vendors (credit).

        The balance is what is still owed to each vendor and restarts per
        vendor.
        """
        vendor_ids = {c.id for c in self.state.contacts if c.type is ContactType.VENDOR}
        entries: list[LedgerEntry] = []

        # A bill edited in the host app can appear twice; the later copy wins
        bills = {bill.id: bill for bill in self.state.bills}
        for bill in bills.values():
            if not bill.vendor_id:
                continue
            if vendor_id is not None and bill.vendor_id != vendor_id:
                continue
            if context is VendorContext.PROJECT and not bill.project_id:
                continue
            if context is VendorContext.RENTAL and (
                bill.project_id or not (bill.building_id or bill.property_id)
            ):
                continue
            bill_building = self.resolver.building_id_for(bill.building_id, bill.property_id)
            if building_id is not None and bill_building != building_id:
                continue
            entries.append(
                LedgerEntry(
                    date=bill.issue_date,
                    debit=bill.amount,
                    particulars=f"Bill #{bill.number} ({bill.description or '-'})",
                    party_id=bill.vendor_id,
                    party_name=self.resolver.contact_name(bill.vendor_id, "Vendor"),
                    source_id=bill.id,
                    extra={
                        "building_name": self.resolver.building_name(bill_building),
                        "bill_id": bill.id,
                    },
                )
            )

        for tx in self.state.transactions:
            if tx.type is not TransactionType.EXPENSE:
                continue
            payee = tx.contact_id if tx.contact_id in vendor_ids else tx.vendor_id
            if payee not in vendor_ids:
                continue
            if vendor_id is not None and payee != vendor_id:
                continue
            if context is VendorContext.PROJECT and not tx.project_id:
                continue
            if context is VendorContext.RENTAL and tx.project_id:
                continue
            tx_building = self.resolver.building_id_for(tx.building_id, tx.property_id)
            if building_id is not None and tx_building != building_id:
                continue
            entries.append(
                LedgerEntry(
                    date=tx.date,
                    credit=tx.amount,
                    particulars=tx.description or "Payment",
                    party_id=payee,
                    party_name=self.resolver.contact_name(payee, "Vendor"),
                    priority=1,
                    source_id=tx.id,
                    extra={
                        "building_name": self.resolver.building_name(tx_building),
                        "transaction_id": tx.id,
                    },
                )
            )

        return self._finish(
            entries,
            start_date,
            end_date,
            group=True,
            search=search,
            search_fields=("party_name", "particulars", "building_name"),
            sort_key=sort_key,
            direction=direction,
        )

    # Owner payouts

    def owner_payouts(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        owner_id: Optional[str] = None,
        building_id: Optional[str] = None,
        group_by_owner: bool = False,
        search: Optional[str] = None,
        sort_key: str = "date",
        direction: SortDirection = SortDirection.ASC,
    ) -> list[LedgerRow]:
        """Rent collected for owners (debit) against payouts and owner costs (credit).

        Broker fees appear once, as a deduction taken from the agreement;
        broker-fee payment transactions are left out so they are not counted
        a second time.
        """
        rental_income_id = self.classifier.id_for_role(SystemRole.RENTAL_INCOME)
        if rental_income_id is None:
            logger.debug("No rental income category, owner payout report is empty")
            return []
        owner_payout_id = self.classifier.id_for_role(SystemRole.OWNER_PAYOUT)
        broker_fee_id = self.classifier.id_for_role(SystemRole.BROKER_FEE)

        entries: list[LedgerEntry] = []

        def keep(entry_owner: Optional[str], entry_building: Optional[str]) -> bool:
            if owner_id is not None and entry_owner != owner_id:
                return False
            if building_id is not None and entry_building != building_id:
                return False
            return True

        def owner_entry(tx, entry_owner, property_id, entry_building, debit, credit, text):
            return LedgerEntry(
                date=tx.date,
                debit=debit,
                credit=credit,
                particulars=tx.description or text,
                party_id=entry_owner,
                party_name=self.resolver.contact_name(entry_owner),
                priority=0 if debit else 1,
                source_id=tx.id,
                extra={
                    "property_name": self.resolver.property_name(property_id, "-"),
                    "building_name": self.resolver.building_name(entry_building),
                },
            )

        for tx in self.state.transactions:
            if tx.type is TransactionType.INCOME and tx.category_id == rental_income_id:
                if not tx.property_id:
                    continue
                entry_owner = self.resolver.owner_id_for_transaction(tx)
                entry_building = self.resolver.building_id_for(tx.building_id, tx.property_id)
                if not keep(entry_owner, entry_building):
                    continue
                amount = coerce_amount(tx.amount, f"(transaction {tx.id})")
                if amount < ZERO:
                    # Service charges deducted from rent are stored as negative income
                    entries.append(
                        owner_entry(tx, entry_owner, tx.property_id, entry_building,
                                    ZERO, -amount, "Service Charge Deduction")
                    )
                else:
                    entries.append(
                        owner_entry(tx, entry_owner, tx.property_id, entry_building,
                                    amount, ZERO, "Rent Collected")
                    )

            elif tx.type is TransactionType.EXPENSE:
                if broker_fee_id is not None and tx.category_id == broker_fee_id:
                    continue
                if tx.contact_id and self._is_tenant(tx.contact_id):
                    continue

                relevant = False
                if owner_payout_id is not None and tx.category_id == owner_payout_id:
                    relevant = True
                elif tx.property_id:
                    relevant = not self._is_tenant_expense_category(tx.category_id)
                if not relevant:
                    continue

                entry_owner = tx.contact_id
                prop = self.resolver.property(tx.property_id)
                if prop is not None:
                    entry_owner = self.resolver.owner_id_for_transaction(tx)
                entry_building = self.resolver.building_id_for(tx.building_id, tx.property_id)
                if not keep(entry_owner, entry_building):
                    continue
                entries.append(
                    owner_entry(tx, entry_owner, tx.property_id, entry_building,
                                ZERO, tx.amount, "Expense/Payout")
                )

        for agreement in self.state.rental_agreements:
            fee = coerce_amount(agreement.broker_fee, f"(agreement {agreement.id})")
            if not agreement.broker_id or fee <= ZERO or not agreement.property_id:
                continue
            prop = self.resolver.property(agreement.property_id)
            if prop is None:
                continue
            entry_owner = self.resolver.owner_id_for_agreement(agreement)
            if not keep(entry_owner, prop.building_id):
                continue
            entries.append(
                LedgerEntry(
                    date=agreement.start_date,
                    credit=fee,
                    particulars=f"Broker Fee: {prop.name} (Agr #{agreement.agreement_number})",
                    party_id=entry_owner,
                    party_name=self.resolver.contact_name(entry_owner),
                    priority=1,
                    source_id=agreement.id,
                    extra={
                        "property_name": prop.name,
                        "building_name": self.resolver.building_name(prop.building_id),
                    },
                )
            )

        return self._finish(
            entries,
            start_date,
            end_date,
            group=group_by_owner,
            search=search,
            search_fields=("party_name", "property_name", "particulars"),
            sort_key=sort_key,
            direction=direction,
        )

    def _is_tenant_expense_category(self, category_id: Optional[str]) -> bool:
        category = self.state.get_category(category_id)
        if category is None:
            return False
        if TENANT_EXPENSE_MARKER in category.name:
            return True
        return self.classifier.role_of(category) is SystemRole.SECURITY_DEPOSIT_REFUND

    # Broker fees

    def broker_fees(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        broker_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_key: str = "date",
        direction: SortDirection = SortDirection.ASC,
    ) -> list[LedgerRow]:
        """Agreement broker fees (debit) against commission payments (credit), per broker."""
        broker_fee_id = self.classifier.id_for_role(SystemRole.BROKER_FEE)
        if broker_fee_id is None:
            logger.debug("No broker fee category, broker fee report is empty")
            return []

        entries: list[LedgerEntry] = []
        for agreement in self.state.rental_agreements:
            if not agreement.broker_id:
                continue
            if broker_id is not None and agreement.broker_id != broker_id:
                continue
            fee = coerce_amount(agreement.broker_fee, f"(agreement {agreement.id})")
            if fee <= ZERO:
                continue
            property_name = self.resolver.property_name(agreement.property_id, "Unit")
            entries.append(
                LedgerEntry(
                    date=agreement.start_date,
                    debit=fee,
                    particulars=f"Fee for {property_name} (Agr #{agreement.agreement_number})",
                    party_id=agreement.broker_id,
                    party_name=self.resolver.contact_name(agreement.broker_id, "Broker"),
                    source_id=agreement.id,
                )
            )

        for tx in self.state.transactions:
            if (
                tx.type is not TransactionType.EXPENSE
                or tx.category_id != broker_fee_id
                or not tx.contact_id
                or tx.project_id
            ):
                continue
            if broker_id is not None and tx.contact_id != broker_id:
                continue
            entries.append(
                LedgerEntry(
                    date=tx.date,
                    credit=tx.amount,
                    particulars=tx.description or "Commission Payment",
                    party_id=tx.contact_id,
                    party_name=self.resolver.contact_name(tx.contact_id, "Broker"),
                    priority=1,
                    source_id=tx.id,
                )
            )

        return self._finish(
            entries,
            start_date,
            end_date,
            group=True,
            search=search,
            search_fields=("party_name", "particulars"),
            sort_key=sort_key,
            direction=direction,
        )

    # Security deposits

    def security_deposits(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        owner_id: Optional[str] = None,
        building_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_key: str = "date",
        direction: SortDirection = SortDirection.ASC,
    ) -> list[LedgerRow]:
        """Deposits held (debit) against refunds, deductions and owner payouts (credit).

        Deposits sort before outflows on the same day.
        """
        deposit_id = self.classifier.id_for_role(SystemRole.SECURITY_DEPOSIT)
        if deposit_id is None:
            logger.debug("No security deposit category, deposit report is empty")
            return []
        refund_id = self.classifier.id_for_role(SystemRole.SECURITY_DEPOSIT_REFUND)
        payout_id = self.classifier.id_for_role(SystemRole.OWNER_SECURITY_PAYOUT)

        entries: list[LedgerEntry] = []
        for tx in self.state.transactions:
            kind = self._deposit_kind(tx, deposit_id, refund_id, payout_id)
            if kind is None:
                continue

            property_id = tx.property_id
            entry_building = tx.building_id
            if not property_id and tx.invoice_id:
                invoice = self.resolver.invoice(tx.invoice_id)
                if invoice is not None:
                    property_id = invoice.property_id
                    entry_building = entry_building or invoice.building_id

            entry_owner = tx.contact_id if kind == "Payout" else None
            prop = self.resolver.property(property_id)
            if prop is not None:
                entry_owner = entry_owner or prop.owner_id
                entry_building = entry_building or prop.building_id

            if owner_id is not None and entry_owner != owner_id:
                continue
            if building_id is not None and entry_building != building_id:
                continue

            if kind == "Payout":
                tenant_name = "-"
            else:
                tenant_name = self.resolver.contact_name(tx.contact_id)
            amount = coerce_amount(tx.amount, f"(transaction {tx.id})")
            is_deposit = kind == "Deposit"
            entries.append(
                LedgerEntry(
                    date=tx.date,
                    debit=amount if is_deposit else ZERO,
                    credit=ZERO if is_deposit else amount,
                    particulars=tx.description or kind,
                    party_id=entry_owner,
                    party_name=self.resolver.contact_name(entry_owner),
                    priority=0 if is_deposit else 1,
                    source_id=tx.id,
                    extra={
                        "kind": kind,
                        "tenant_name": tenant_name,
                        "property_name": prop.name if prop is not None else "-",
                        "building_name": self.resolver.building_name(entry_building, "-"),
                    },
                )
            )

        return self._finish(
            entries,
            start_date,
            end_date,
            group=False,
            search=search,
            search_fields=("party_name", "tenant_name", "property_name", "particulars"),
            sort_key=sort_key,
            direction=direction,
        )

    def _deposit_kind(
        self,
        tx: Transaction,
        deposit_id: str,
        refund_id: Optional[str],
        payout_id: Optional[str],
    ) -> Optional[str]:
        if tx.type is TransactionType.INCOME and tx.category_id == deposit_id:
            return "Deposit"
        if tx.type is not TransactionType.EXPENSE:
            return None
        if payout_id is not None and tx.category_id == payout_id:
            return "Payout"
        if refund_id is not None and tx.category_id == refund_id:
            return "Refund"
        if self._is_tenant(tx.contact_id):
            return "Deduction"
        category = self.state.get_category(tx.category_id)
        if category is not None and TENANT_EXPENSE_MARKER in category.name:
            return "Deduction"
        return None


def closing_balances(rows: list[LedgerRow]) -> dict[str, Decimal]:
    """Last running balance per party, in row order."""
    balances: dict[str, Decimal] = {}
    for row in rows:
        balances[row.entry.party_name or UNKNOWN] = row.balance
    return balances
