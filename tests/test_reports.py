"""Tests for the ledger report services."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from propledger.domain.entities import InvoiceType, SortDirection
from propledger.domain.reports import LedgerReportService, VendorContext, closing_balances

from builders import agreement, bill, expense, income, invoice


def _balances(rows):
    return [row.balance for row in rows]


def _particulars(rows):
    return [row.particulars for row in rows]


@pytest.fixture
def tenant_state(base_state):
    return replace(
        base_state,
        invoices=(
            invoice("inv-1", "101", date(2024, 1, 1), 1000, "tenant-1"),
            invoice("inv-2", "102", date(2024, 1, 1), 800, "tenant-2",
                    invoice_type=InvoiceType.SERVICE_CHARGE, description="Maintenance"),
            invoice("inv-3", "103", date(2024, 1, 2), 9000, "client-1",
                    invoice_type=InvoiceType.INSTALLMENT),
            invoice("inv-4", "104", date(2024, 2, 1), 1000, "tenant-1"),
        ),
        transactions=(
            income("p1", date(2024, 1, 1), 600, contact_id="tenant-1"),
            income("p2", date(2024, 1, 10), 800, contact_id="tenant-2", description="Bank transfer"),
            income("p3", date(2024, 1, 5), 5000, contact_id="client-1"),
            income("p4", date(2024, 1, 20), 100, contact_id="ghost", invoice_id="inv-1"),
            income("p5", date(2024, 1, 21), 100),
        ),
    )


class TestTenantLedger:
    """Tests for the tenant ledger."""

    def test_single_tenant(self, tenant_state):
        rows = LedgerReportService(tenant_state).tenant_ledger(tenant_id="tenant-1")

        assert _particulars(rows) == [
            "Invoice #101 (Rent)",
            "Payment Received",
            "Invoice #104 (Rent)",
        ]
        assert _balances(rows) == [Decimal("1000"), Decimal("400"), Decimal("1400")]

    def test_all_tenants_skip_non_tenant_receivables(self, tenant_state):
        rows = LedgerReportService(tenant_state).tenant_ledger()

        names = {row.party_name for row in rows}
        assert names == {"Ali Raza", "Sara Malik", "Unknown/Deleted Tenant"}
        assert "Invoice #103 (Rent)" not in _particulars(rows)
        assert "Invoice #102 (Maintenance)" in _particulars(rows)

    def test_grouped_balances_restart_per_tenant(self, tenant_state):
        rows = LedgerReportService(tenant_state).tenant_ledger(group_by_tenant=True)

        assert [row.party_name for row in rows] == [
            "Ali Raza", "Ali Raza", "Ali Raza",
            "Sara Malik", "Sara Malik",
            "Unknown/Deleted Tenant",
        ]
        assert _balances(rows) == [
            Decimal("1000"), Decimal("400"), Decimal("1400"),
            Decimal("800"), Decimal("0"),
            Decimal("-100"),
        ]
        assert closing_balances(rows) == {
            "Ali Raza": Decimal("1400"),
            "Sara Malik": Decimal("0"),
            "Unknown/Deleted Tenant": Decimal("-100"),
        }

    def test_date_range(self, tenant_state):
        rows = LedgerReportService(tenant_state).tenant_ledger(
            start_date=date(2024, 1, 2), end_date=date(2024, 1, 31), tenant_id="tenant-2"
        )

        assert _particulars(rows) == ["Bank transfer"]
        assert _balances(rows) == [Decimal("-800")]

    def test_display_sort_keeps_chronological_balances(self, tenant_state):
        rows = LedgerReportService(tenant_state).tenant_ledger(
            tenant_id="tenant-1", sort_key="date", direction=SortDirection.DESC
        )

        assert _balances(rows) == [Decimal("1400"), Decimal("400"), Decimal("1000")]

    def test_search(self, tenant_state):
        rows = LedgerReportService(tenant_state).tenant_ledger(search="sara")

        assert {row.party_name for row in rows} == {"Sara Malik"}


@pytest.fixture
def vendor_state(base_state):
    return replace(
        base_state,
        bills=(
            bill("b1", "1", date(2024, 1, 1), 1000, vendor_id="vendor-1", project_id="proj-1"),
            bill("b2", "2", date(2024, 1, 2), 500, vendor_id="vendor-1", property_id="prop-1"),
            bill("b3", "3", date(2024, 1, 3), 200, vendor_id="vendor-2", building_id="bld-2",
                 description="Wiring"),
            bill("b1", "1", date(2024, 1, 1), 1100, vendor_id="vendor-1", project_id="proj-1"),
            bill("b4", "4", date(2024, 1, 4), 50, description="No vendor"),
        ),
        transactions=(
            expense("t1", date(2024, 1, 5), 300, contact_id="vendor-1", project_id="proj-1"),
            expense("t2", date(2024, 1, 6), 200, vendor_id="vendor-2", building_id="bld-2"),
            expense("t3", date(2024, 1, 7), 99, contact_id="staff-1"),
            expense("t4", date(2024, 1, 8), 100, contact_id="vendor-1", property_id="prop-1"),
        ),
    )


class TestVendorLedger:
    """Tests for the vendor ledger."""

    def test_grouped_by_vendor(self, vendor_state):
        rows = LedgerReportService(vendor_state).vendor_ledger()

        assert [row.party_name for row in rows] == [
            "BuildCo", "BuildCo", "BuildCo", "BuildCo", "Spark Electric", "Spark Electric",
        ]
        assert _balances(rows) == [
            Decimal("1100"), Decimal("1600"), Decimal("1300"), Decimal("1200"),
            Decimal("200"), Decimal("0"),
        ]

    def test_duplicate_bill_counted_once(self, vendor_state):
        rows = LedgerReportService(vendor_state).vendor_ledger(vendor_id="vendor-1")

        bill_rows = [row for row in rows if row.get("bill_id") == "b1"]
        assert len(bill_rows) == 1
        assert bill_rows[0].debit == Decimal("1100")

    def test_project_context(self, vendor_state):
        rows = LedgerReportService(vendor_state).vendor_ledger(context=VendorContext.PROJECT)

        assert _particulars(rows) == ["Bill #1 (-)", "Payment"]
        assert _balances(rows) == [Decimal("1100"), Decimal("800")]

    def test_rental_context(self, vendor_state):
        rows = LedgerReportService(vendor_state).vendor_ledger(context=VendorContext.RENTAL)

        assert _particulars(rows) == ["Bill #2 (-)", "Payment", "Bill #3 (Wiring)", "Payment"]

    def test_grouped_rows_sorted_by_requested_column(self, vendor_state):
        rows = LedgerReportService(vendor_state).vendor_ledger(
            vendor_id="vendor-1", sort_key="debit", direction=SortDirection.DESC
        )

        assert [row.debit for row in rows] == [
            Decimal("1100"), Decimal("500"), Decimal("0"), Decimal("0"),
        ]
        # balances still follow the chronological order
        assert _balances(rows)[:2] == [Decimal("1100"), Decimal("1600")]

    def test_grouped_rows_newest_first(self, vendor_state):
        rows = LedgerReportService(vendor_state).vendor_ledger(
            vendor_id="vendor-1", direction=SortDirection.DESC
        )

        assert [row.date for row in rows] == [
            date(2024, 1, 8), date(2024, 1, 5), date(2024, 1, 2), date(2024, 1, 1),
        ]
        assert _balances(rows) == [
            Decimal("1200"), Decimal("1300"), Decimal("1600"), Decimal("1100"),
        ]

    def test_building_filter_uses_property_building(self, vendor_state):
        rows = LedgerReportService(vendor_state).vendor_ledger(building_id="bld-1")

        assert [row.get("building_name") for row in rows] == ["Tower A", "Tower A"]
        assert _balances(rows) == [Decimal("500"), Decimal("400")]


@pytest.fixture
def owner_state(base_state):
    return replace(
        base_state,
        rental_agreements=(
            agreement("agr-1", "AGR-0001", "prop-1", "tenant-1", broker_id="broker-1",
                      broker_fee=300),
            agreement("agr-2", "AGR-0002", "prop-2", "tenant-2", broker_id="broker-1",
                      broker_fee=0),
        ),
        transactions=(
            income("r1", date(2024, 1, 5), 1000, category_id="cat-rent", property_id="prop-1"),
            income("r2", date(2024, 1, 5), -100, category_id="cat-rent", property_id="prop-1"),
            income("r3", date(2024, 1, 5), 700, category_id="cat-rent"),
            income("r4", date(2024, 1, 6), 2000, category_id="cat-rent", property_id="prop-2"),
            expense("e1", date(2024, 1, 20), 500, category_id="cat-owner-payout",
                    contact_id="owner-1"),
            expense("e2", date(2024, 1, 15), 50, category_id="cat-repairs", property_id="prop-1"),
            expense("e3", date(2024, 1, 16), 70, category_id="cat-tenant-repairs",
                    property_id="prop-1"),
            expense("e4", date(2024, 1, 17), 300, category_id="cat-broker", property_id="prop-1",
                    contact_id="broker-1"),
            expense("e5", date(2024, 1, 18), 40, category_id="cat-repairs", property_id="prop-1",
                    contact_id="tenant-1"),
            expense("e6", date(2024, 1, 19), 900, category_id="cat-sd-refund",
                    property_id="prop-1"),
            expense("e7", date(2024, 1, 21), 60, category_id="cat-repairs"),
        ),
    )


class TestOwnerPayouts:
    """Tests for the owner payout ledger."""

    def test_single_owner(self, owner_state):
        rows = LedgerReportService(owner_state).owner_payouts(owner_id="owner-1")

        assert _particulars(rows) == [
            "Broker Fee: A-101 (Agr #AGR-0001)",
            "Rent Collected",
            "Service Charge Deduction",
            "Expense/Payout",
            "Expense/Payout",
        ]
        assert _balances(rows) == [
            Decimal("-300"), Decimal("700"), Decimal("600"), Decimal("550"), Decimal("50"),
        ]
        assert rows[0].get("property_name") == "A-101"
        assert rows[1].get("building_name") == "Tower A"
        assert rows[4].get("property_name") == "-"

    def test_grouped_by_owner(self, owner_state):
        rows = LedgerReportService(owner_state).owner_payouts(group_by_owner=True)

        assert closing_balances(rows) == {
            "Ayesha Khan": Decimal("50"),
            "Bilal Ahmed": Decimal("2000"),
        }

    def test_building_filter(self, owner_state):
        rows = LedgerReportService(owner_state).owner_payouts(building_id="bld-2")

        assert _particulars(rows) == ["Rent Collected"]

    def test_stamped_agreement_owner_receives_rent(self, owner_state):
        state = replace(
            owner_state,
            rental_agreements=owner_state.rental_agreements
            + (agreement("agr-old", "AGR-0000", "prop-1", "tenant-1", owner_id="owner-2"),),
            transactions=(
                income("r9", date(2023, 12, 5), 900, category_id="cat-rent",
                       property_id="prop-1", agreement_id="agr-old"),
            ),
        )

        rows = LedgerReportService(state).owner_payouts(owner_id="owner-2")

        assert [(row.particulars, row.debit) for row in rows] == [("Rent Collected", Decimal("900"))]

    def test_empty_without_rental_income_category(self, owner_state):
        state = replace(
            owner_state,
            categories=tuple(c for c in owner_state.categories if c.id != "cat-rent"),
        )

        assert LedgerReportService(state).owner_payouts() == []


class TestBrokerFees:
    """Tests for the broker fee ledger."""

    def test_fees_against_commission_payments(self, base_state):
        state = replace(
            base_state,
            rental_agreements=(
                agreement("agr-1", "AGR-0001", "prop-1", "tenant-1", broker_id="broker-1",
                          broker_fee=300),
                agreement("agr-2", "AGR-0002", "prop-x", "tenant-2", broker_id="broker-1",
                          broker_fee=200, start_date=date(2024, 2, 1)),
                agreement("agr-3", "AGR-0003", "prop-2", "tenant-2"),
            ),
            transactions=(
                expense("c1", date(2024, 1, 10), 300, category_id="cat-broker",
                        contact_id="broker-1"),
                expense("c2", date(2024, 1, 11), 999, category_id="cat-broker",
                        contact_id="broker-1", project_id="proj-1"),
                expense("c3", date(2024, 1, 12), 999, category_id="cat-broker"),
            ),
        )

        rows = LedgerReportService(state).broker_fees()

        assert _particulars(rows) == [
            "Fee for A-101 (Agr #AGR-0001)",
            "Commission Payment",
            "Fee for Unit (Agr #AGR-0002)",
        ]
        assert _balances(rows) == [Decimal("300"), Decimal("0"), Decimal("200")]
        assert {row.party_name for row in rows} == {"Hamza Estates"}

    def test_empty_without_broker_fee_category(self, base_state):
        state = replace(
            base_state,
            categories=tuple(c for c in base_state.categories if c.id != "cat-broker"),
            rental_agreements=(
                agreement("agr-1", "AGR-0001", "prop-1", "tenant-1", broker_id="broker-1",
                          broker_fee=300),
            ),
        )

        assert LedgerReportService(state).broker_fees() == []


@pytest.fixture
def deposit_state(base_state):
    return replace(
        base_state,
        invoices=(
            invoice("sd-inv", "SD-1", date(2024, 1, 1), 1500, "tenant-2",
                    invoice_type=InvoiceType.SECURITY_DEPOSIT, property_id="prop-2"),
        ),
        transactions=(
            expense("d-refund", date(2024, 1, 1), 100, category_id="cat-sd-refund",
                    contact_id="tenant-1", property_id="prop-1"),
            income("d1", date(2024, 1, 1), 2000, category_id="cat-sd", contact_id="tenant-1",
                   property_id="prop-1"),
            expense("d2", date(2024, 2, 1), 300, category_id="cat-owner-sd",
                    contact_id="owner-1", property_id="prop-1"),
            expense("d3", date(2024, 3, 1), 200, category_id="cat-tenant-repairs",
                    property_id="prop-1"),
            expense("d4", date(2024, 3, 2), 150, category_id="cat-repairs",
                    contact_id="tenant-1", property_id="prop-1"),
            expense("d5", date(2024, 3, 3), 999, category_id="cat-repairs",
                    property_id="prop-1"),
            income("d6", date(2024, 1, 3), 1500, category_id="cat-sd", contact_id="tenant-2",
                   invoice_id="sd-inv"),
        ),
    )


class TestSecurityDeposits:
    """Tests for the security deposit ledger."""

    def test_deposit_kinds_and_balance(self, deposit_state):
        rows = LedgerReportService(deposit_state).security_deposits(owner_id="owner-1")

        assert [row.get("kind") for row in rows] == [
            "Deposit", "Refund", "Payout", "Deduction", "Deduction",
        ]
        assert _balances(rows) == [
            Decimal("2000"), Decimal("1900"), Decimal("1600"), Decimal("1400"), Decimal("1250"),
        ]
        assert rows[0].get("tenant_name") == "Ali Raza"
        assert rows[2].get("tenant_name") == "-"
        assert rows[0].get("property_name") == "A-101"
        assert rows[0].get("building_name") == "Tower A"

    def test_property_resolved_through_invoice(self, deposit_state):
        rows = LedgerReportService(deposit_state).security_deposits(building_id="bld-2")

        assert len(rows) == 1
        assert rows[0].party_name == "Bilal Ahmed"
        assert rows[0].get("property_name") == "B-201"

    def test_single_running_balance_across_owners(self, deposit_state):
        rows = LedgerReportService(deposit_state).security_deposits()

        assert rows[-1].balance == Decimal("2000") - Decimal("750") + Decimal("1500")
