"""Tests for PM fee accrual, allocation cycles and PM configuration."""

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from propledger.domain.entities import (
    BillExpenseItem,
    PMConfig,
    PMFrequency,
    Project,
)
from propledger.domain.errors import NotFoundError, ValidationError
from propledger.domain.pm_fee import (
    FeeAccrualService,
    PMConfigService,
    allocation_description,
    cycle_id,
    cycle_label,
    cycle_range,
    parse_fee_rate,
)
from propledger.store.actions import UpdateProject
from propledger.store.memory import InMemoryStore

from builders import bill, expense, transfer


def _worked_example(base_state):
    project = Project(
        id="proj-1",
        name="Skyline Residency",
        pm_config=PMConfig(
            rate=Decimal("10"),
            frequency=PMFrequency.MONTHLY,
            excluded_category_ids=("cat-broker",),
        ),
    )
    return replace(
        base_state,
        projects=(project,),
        transactions=(
            expense("t1", date(2024, 1, 10), 1000, project_id="proj-1", category_id="cat-materials"),
            expense("t2", date(2024, 1, 12), 200, project_id="proj-1", category_id="cat-broker"),
            expense("t3", date(2024, 1, 20), 50, project_id="proj-1", category_id="cat-pm"),
        ),
    )


class TestComputeFinancials:
    """Tests for project fee financials."""

    def test_pm_cost_expense_counts_as_payment(self, base_state):
        result = FeeAccrualService(_worked_example(base_state)).compute_financials("proj-1")

        assert result.total_expense == Decimal("1200")
        assert result.excluded_cost == Decimal("200")
        assert result.net_base == Decimal("1000")
        assert result.accrued == Decimal("100")
        assert result.paid == Decimal("50")
        assert result.balance == Decimal("50")

    def test_pm_fee_transfers_count_as_paid(self, base_state):
        state = replace(
            _worked_example(base_state),
            transactions=_worked_example(base_state).transactions
            + (
                transfer("t4", date(2024, 2, 1), 20, project_id="proj-1", description="PM Payout Feb"),
                transfer("t5", date(2024, 2, 2), 15, project_id="proj-1", description="pm FEE top-up"),
                transfer("t6", date(2024, 2, 3), 99, project_id="proj-1", description="Owner transfer"),
                transfer("t7", date(2024, 2, 4), 99, project_id="proj-1", description="pm fee", is_system=True),
                transfer("t8", date(2024, 2, 5), 99, project_id="proj-2", description="pm fee"),
            ),
        )

        result = FeeAccrualService(state).compute_financials("proj-1")

        assert result.paid == Decimal("85")

    def test_system_pm_cost_expense_is_not_a_payment(self, base_state):
        state = replace(
            base_state,
            transactions=(
                expense("t1", date(2024, 1, 10), 500, project_id="proj-1", category_id="cat-materials"),
                expense("t2", date(2024, 1, 31), 50, project_id="proj-1", category_id="cat-pm", is_system=True),
            ),
        )

        result = FeeAccrualService(state).compute_financials("proj-1")

        assert result.paid == Decimal("0")
        assert result.total_expense == Decimal("550")
        assert result.excluded_cost == Decimal("50")
        assert result.net_base == Decimal("500")

    def test_project_resolved_through_bill(self, base_state):
        state = replace(
            base_state,
            bills=(bill("b1", "B-1", date(2024, 1, 1), 300, project_id="proj-1", category_id="cat-labour"),),
            transactions=(expense("t1", date(2024, 1, 5), 300, bill_id="b1"),),
        )

        result = FeeAccrualService(state).compute_financials("proj-1")

        assert result.total_expense == Decimal("300")
        assert result.accrued == Decimal("30")

    def test_bill_expense_items_counted_once_per_bill(self, base_state):
        items = (
            BillExpenseItem(category_id="cat-materials", net_value=Decimal("700")),
            BillExpenseItem(category_id="cat-broker", net_value=Decimal("100")),
            BillExpenseItem(category_id=None, net_value=Decimal("999")),
        )
        state = replace(
            base_state,
            bills=(bill("b1", "B-1", date(2024, 1, 1), 800, project_id="proj-1", expense_items=items),),
            transactions=(
                expense("t1", date(2024, 1, 5), 400, bill_id="b1"),
                expense("t2", date(2024, 1, 6), 400, bill_id="b1"),
            ),
        )

        result = FeeAccrualService(state).compute_financials("proj-1")

        assert result.total_expense == Decimal("800")
        # Broker fee is in the legacy default exclusion list
        assert result.excluded_cost == Decimal("100")
        assert result.net_base == Decimal("700")

    def test_as_of_limits_transactions(self, base_state):
        state = replace(
            base_state,
            transactions=(
                expense("t1", date(2024, 1, 10), 100, project_id="proj-1", category_id="cat-materials"),
                expense("t2", datetime(2024, 1, 31, 18, 0), 200, project_id="proj-1", category_id="cat-materials"),
                expense("t3", date(2024, 2, 1), 400, project_id="proj-1", category_id="cat-materials"),
            ),
        )

        result = FeeAccrualService(state).compute_financials("proj-1", as_of=date(2024, 1, 31))

        assert result.total_expense == Decimal("300")

    def test_unconfigured_project_accrues_nothing(self, base_state):
        state = replace(
            base_state,
            transactions=(expense("t1", date(2024, 1, 10), 100, project_id="proj-2"),),
        )

        result = FeeAccrualService(state).compute_financials("proj-2")

        assert result.total_expense == Decimal("100")
        assert result.accrued == Decimal("0")

    def test_unknown_project_raises(self, base_state):
        with pytest.raises(NotFoundError):
            FeeAccrualService(base_state).compute_financials("missing")


def test_spec_worked_example_exact(base_state):
    """Expense 1000 other, 200 excluded broker fee, 50 PM cost payment."""
    project = Project(
        id="P",
        name="P",
        pm_config=PMConfig(rate=Decimal("10"), excluded_category_ids=("cat-broker",)),
    )
    state = replace(
        base_state,
        projects=(project,),
        transactions=(
            expense("t1", date(2024, 1, 1), 800, project_id="P", category_id="cat-materials"),
            expense("t2", date(2024, 1, 1), 200, project_id="P", category_id="cat-broker"),
            expense("t3", date(2024, 1, 1), 50, project_id="P", category_id="cat-pm"),
        ),
    )

    result = FeeAccrualService(state).compute_financials("P")

    assert result.total_expense == Decimal("1000")
    assert result.excluded_cost == Decimal("200")
    assert result.net_base == Decimal("800")
    assert result.accrued == Decimal("80")
    assert result.paid == Decimal("50")
    assert result.balance == Decimal("30")


class TestCycles:
    """Tests for cycle identifiers, labels and ranges."""

    def test_cycle_ids(self):
        day = date(2024, 1, 15)
        assert cycle_id(day, PMFrequency.YEARLY) == "2024"
        assert cycle_id(day, PMFrequency.MONTHLY) == "2024-01"
        assert cycle_id(day, PMFrequency.WEEKLY) == "2024-W03"
        assert cycle_id(date(2024, 1, 7), PMFrequency.WEEKLY) == "2024-W01"
        assert cycle_id(date(2024, 1, 8), PMFrequency.WEEKLY) == "2024-W02"

    def test_cycle_labels(self):
        assert cycle_label("2024", PMFrequency.YEARLY) == "2024"
        assert cycle_label("2024-01", PMFrequency.MONTHLY) == "January 2024"
        assert cycle_label("2024-W03", PMFrequency.WEEKLY) == "Week 3, 2024"

    def test_cycle_ranges(self):
        assert cycle_range("2024", PMFrequency.YEARLY) == (date(2024, 1, 1), date(2024, 12, 31))
        assert cycle_range("2024-02", PMFrequency.MONTHLY) == (date(2024, 2, 1), date(2024, 2, 29))
        assert cycle_range("2024-W03", PMFrequency.WEEKLY) == (date(2024, 1, 15), date(2024, 1, 21))

    def test_cycle_range_rejects_mismatched_id(self):
        with pytest.raises(ValueError, match="Invalid monthly cycle") as exc_info:
            cycle_range("2024-W03", PMFrequency.MONTHLY)
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_allocation_description(self):
        assert allocation_description("2024-01", PMFrequency.MONTHLY) == (
            "PM Fee Allocation - [PM-ALLOC-2024-01] - January 2024 - [2024-01-01] to [2024-01-31]"
        )


def _allocation_state(base_state):
    return replace(
        base_state,
        bills=(
            bill(
                "pm-bill-1", "PM-ALLOC-00001", date(2024, 1, 31), 80,
                project_id="proj-1", category_id="cat-pm", paid_amount=30,
                description=allocation_description("2024-01", PMFrequency.MONTHLY),
            ),
            bill(
                "pm-bill-2", "PM-ALLOC-00002", date(2024, 2, 29), 40,
                project_id="proj-1", category_id="cat-pm", paid_amount=40,
                description=allocation_description("2024-02", PMFrequency.MONTHLY),
            ),
            bill("other", "B-9", date(2024, 1, 5), 500, project_id="proj-1", description="Cement"),
        ),
        transactions=(
            expense("t1", date(2024, 1, 10), 800, project_id="proj-1", category_id="cat-materials"),
            expense("t2", date(2024, 2, 10), 400, project_id="proj-1", category_id="cat-labour"),
            expense("t3", date(2024, 3, 5), 250, project_id="proj-1", category_id="cat-labour"),
            expense("pay-1", date(2024, 2, 5), 30, project_id="proj-1", bill_id="pm-bill-1",
                    category_id="cat-pm"),
            expense("pay-2", date(2024, 2, 29), 40, project_id="proj-1", bill_id="pm-bill-2",
                    category_id="cat-pm", description="[PM-ALLOC-2024-02] payment"),
            transfer("pay-3", date(2024, 3, 1), 5, project_id="proj-1", description="PM fee advance"),
        ),
    )


class TestAllocations:
    """Tests for allocation bills, the PM ledger and pending cycles."""

    def test_allocations_parsed_from_bills(self, base_state):
        allocations = FeeAccrualService(_allocation_state(base_state)).allocations("proj-1")

        assert [a.cycle_id for a in allocations] == ["2024-01", "2024-02"]
        assert allocations[0].start_date == date(2024, 1, 1)
        assert allocations[0].end_date == date(2024, 1, 31)
        assert allocations[0].amount == Decimal("80")
        assert allocations[0].unpaid == Decimal("50")

    def test_unpaid_allocations(self, base_state):
        unpaid = FeeAccrualService(_allocation_state(base_state)).unpaid_allocations("proj-1")

        assert [a.bill_id for a in unpaid] == ["pm-bill-1"]

    def test_pm_ledger_allocations_before_payments_on_same_day(self, base_state):
        rows = FeeAccrualService(_allocation_state(base_state)).pm_ledger("proj-1")

        assert [(r.get("type"), r.date) for r in rows] == [
            ("Allocation", date(2024, 1, 31)),
            ("Payment", date(2024, 2, 5)),
            ("Allocation", date(2024, 2, 29)),
            ("Payment", date(2024, 2, 29)),
            ("Payment", date(2024, 3, 1)),
        ]
        assert [r.balance for r in rows] == [
            Decimal("80"), Decimal("50"), Decimal("90"), Decimal("50"), Decimal("45"),
        ]
        assert rows[3].particulars == "February 2024 (Payment)"
        assert rows[1].particulars == "Payment"

    def test_unallocated_amount_for_current_cycle(self, base_state):
        service = FeeAccrualService(_allocation_state(base_state))

        # March is not allocated; 250 of labour so far at 10%
        assert service.unallocated_amount("proj-1", today=date(2024, 3, 20)) == Decimal("25.00")
        # February is allocated already
        assert service.unallocated_amount("proj-1", today=date(2024, 2, 20)) == Decimal("0")

    def test_unallocated_amount_rounds_half_up(self, base_state):
        state = replace(
            base_state,
            transactions=(
                expense("t1", date(2024, 3, 1), Decimal("0.05"), project_id="proj-1",
                        category_id="cat-materials"),
            ),
        )

        amount = FeeAccrualService(state).unallocated_amount("proj-1", today=date(2024, 3, 2))

        assert amount == Decimal("0.01")

    def test_pending_cycles_skip_allocated_and_unfinished(self, base_state):
        state = _allocation_state(base_state)
        state = replace(
            state,
            transactions=state.transactions
            + (expense("t4", date(2024, 4, 3), 1000, project_id="proj-1", category_id="cat-labour"),),
        )

        pending = FeeAccrualService(state).pending_cycles("proj-1", today=date(2024, 4, 15))

        assert [p.cycle_id for p in pending] == ["2024-03"]
        assert pending[0].label == "March 2024"
        assert pending[0].fee_base == Decimal("250")
        assert pending[0].amount == Decimal("25.00")
        assert pending[0].start_date == date(2024, 3, 1)
        assert pending[0].end_date == date(2024, 3, 31)

    def test_pending_cycles_for_unconfigured_project(self, base_state):
        assert FeeAccrualService(base_state).pending_cycles("proj-2", today=date(2024, 4, 1)) == []


class TestPMConfigService:
    """Tests for editing the PM configuration."""

    def test_parse_fee_rate(self):
        assert parse_fee_rate("7.5") == Decimal("7.5")
        assert parse_fee_rate(0) == Decimal("0")

    @pytest.mark.parametrize("raw", ["-1", "abc", "NaN", float("nan"), "inf", ""])
    def test_invalid_rates_rejected_before_dispatch(self, memory_store, raw):
        with pytest.raises(ValidationError):
            PMConfigService(memory_store).update_config("proj-1", raw)
        assert memory_store.dispatched == []

    def test_update_dispatches_project(self, memory_store):
        saved = PMConfigService(memory_store).update_config(
            "proj-2", "5", frequency=PMFrequency.WEEKLY, excluded_category_ids=("cat-labour",)
        )

        assert saved is True
        assert isinstance(memory_store.dispatched[-1], UpdateProject)
        config = memory_store.state.get_project("proj-2").pm_config
        assert config.rate == Decimal("5")
        assert config.frequency is PMFrequency.WEEKLY
        assert config.excluded_category_ids == ("cat-labour",)

    def test_declined_confirmation_cancels_when_history_exists(self, base_state):
        store = InMemoryStore(_allocation_state(base_state))
        asked = []

        def decline(message):
            asked.append(message)
            return False

        saved = PMConfigService(store).update_config("proj-1", "12", confirm=decline)

        assert saved is False
        assert len(asked) == 1
        assert store.dispatched == []
        assert store.state.get_project("proj-1").pm_config.rate == Decimal("10")

    def test_accepted_confirmation_saves(self, base_state):
        store = InMemoryStore(_allocation_state(base_state))

        saved = PMConfigService(store).update_config("proj-1", "12", confirm=lambda m: True)

        assert saved is True
        assert store.state.get_project("proj-1").pm_config.rate == Decimal("12")

    def test_rate_change_keeps_frequency_and_vendor(self, base_state):
        config = PMConfig(
            rate=Decimal("10"),
            frequency=PMFrequency.WEEKLY,
            excluded_category_ids=("cat-broker",),
            vendor_id="vendor-1",
        )
        state = replace(
            base_state,
            projects=(Project(id="proj-1", name="Skyline Residency", pm_config=config),),
        )
        store = InMemoryStore(state)

        assert PMConfigService(store).update_config("proj-1", "12") is True

        assert store.state.get_project("proj-1").pm_config == replace(
            config, rate=Decimal("12")
        )

    def test_vendor_and_frequency_can_be_changed(self, memory_store):
        PMConfigService(memory_store).update_config(
            "proj-1", "10", frequency=PMFrequency.YEARLY, vendor_id="vendor-1"
        )

        config = memory_store.state.get_project("proj-1").pm_config
        assert config.frequency is PMFrequency.YEARLY
        assert config.vendor_id == "vendor-1"

    def test_confirmation_asked_for_unconfigured_project_with_history(self, base_state):
        state = _allocation_state(base_state)
        state = replace(
            state,
            projects=tuple(
                replace(p, pm_config=None) if p.id == "proj-1" else p for p in state.projects
            ),
        )
        store = InMemoryStore(state)
        asked = []

        def decline(message):
            asked.append(message)
            return False

        assert PMConfigService(store).update_config("proj-1", "5", confirm=decline) is False
        assert len(asked) == 1
        assert store.state.get_project("proj-1").pm_config is None

    def test_no_confirmation_needed_without_history(self, memory_store):
        def fail(message):
            raise AssertionError("should not ask")

        assert PMConfigService(memory_store).update_config("proj-1", "12", confirm=fail) is True

    def test_unknown_project(self, memory_store):
        with pytest.raises(NotFoundError):
            PMConfigService(memory_store).update_config("missing", "5")
