"""Shared pytest fixtures for propledger tests."""

import json
from decimal import Decimal

import pytest
from click.testing import CliRunner

from propledger.domain.entities import (
    Account,
    AccountType,
    Broker,
    Building,
    Category,
    Client,
    Owner,
    PMConfig,
    PMFrequency,
    Project,
    Property,
    Staff,
    Tenant,
    TransactionType,
    Vendor,
)
from propledger.store.mappers import state_to_dict
from propledger.store.memory import InMemoryStore
from propledger.store.state import AppState


CATEGORIES = (
    Category(id="cat-rent", name="Rental Income", type=TransactionType.INCOME),
    Category(id="cat-sd", name="Security Deposit", type=TransactionType.INCOME),
    Category(id="cat-sd-refund", name="Security Deposit Refund"),
    Category(id="cat-owner-sd", name="Owner Security Payout"),
    Category(id="cat-pm", name="Project Management Cost"),
    Category(id="cat-broker", name="Broker Fee"),
    Category(id="cat-owner-payout", name="Owner Payout"),
    Category(id="cat-rebate", name="Rebate Amount"),
    Category(id="cat-construction", name="Construction"),
    Category(id="cat-materials", name="Materials", parent_id="cat-construction"),
    Category(id="cat-labour", name="Labour", parent_id="cat-construction"),
    Category(id="cat-repairs", name="Repairs"),
    Category(id="cat-tenant-repairs", name="Repairs (Tenant)"),
)

CONTACTS = (
    Owner(id="owner-1", name="Ayesha Khan"),
    Owner(id="owner-2", name="Bilal Ahmed"),
    Client(id="client-1", name="Crescent Holdings", company_name="Crescent Holdings Ltd"),
    Tenant(id="tenant-1", name="Ali Raza"),
    Tenant(id="tenant-2", name="Sara Malik"),
    Vendor(id="vendor-1", name="BuildCo"),
    Vendor(id="vendor-2", name="Spark Electric"),
    Broker(id="broker-1", name="Hamza Estates"),
    Staff(id="staff-1", name="Usman"),
)

BUILDINGS = (
    Building(id="bld-1", name="Tower A"),
    Building(id="bld-2", name="Tower B"),
)

PROPERTIES = (
    Property(id="prop-1", name="A-101", owner_id="owner-1", building_id="bld-1"),
    Property(id="prop-2", name="B-201", owner_id="owner-2", building_id="bld-2"),
)

PROJECTS = (
    Project(
        id="proj-1",
        name="Skyline Residency",
        pm_config=PMConfig(rate=Decimal("10"), frequency=PMFrequency.MONTHLY),
    ),
    Project(id="proj-2", name="Unconfigured"),
)

ACCOUNTS = (
    Account(id="acc-bank", name="Main Bank", type=AccountType.BANK),
    Account(id="acc-cash", name="Petty Cash", type=AccountType.CASH),
)


@pytest.fixture
def base_state():
    """State with reference data only (no transactions)."""
    return AppState(
        categories=CATEGORIES,
        contacts=CONTACTS,
        buildings=BUILDINGS,
        properties=PROPERTIES,
        projects=PROJECTS,
        accounts=ACCOUNTS,
    )


@pytest.fixture
def memory_store(base_state):
    """Create an InMemoryStore holding the base state."""
    return InMemoryStore(base_state)


@pytest.fixture
def cli_runner():
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def write_state(tmp_path):
    """Write a state snapshot to a temporary JSON file and return its path."""

    def _write(state: AppState) -> str:
        path = tmp_path / "state.json"
        path.write_text(json.dumps(state_to_dict(state), indent=2), encoding="utf-8")
        return str(path)

    return _write
