"""Ledger report commands."""

import click

from propledger.cli.date_filters import date_range_options
from propledger.cli.error_handling import handle_domain_error
from propledger.cli.output import echo_ledger
from propledger.domain.entities import ContactType, SortDirection
from propledger.domain.reports import LedgerReportService, VendorContext
from propledger.utils.contact_resolver import resolve_contact

OWNER_TYPES = (ContactType.OWNER, ContactType.CLIENT)


def _resolve(ctx, contact: str | None, types) -> str | None:
    if contact is None:
        return None
    state = ctx.obj["store"].state
    try:
        return resolve_contact(state.contacts, contact, types)
    except ValueError as e:
        handle_domain_error(ctx, e)


def _sort_options(command):
    command = click.option("--desc", is_flag=True, help="Sort descending")(command)
    command = click.option(
        "--sort",
        "sort_key",
        default="date",
        show_default=True,
        help="Column to sort by (date, particulars, party_name, debit, credit, balance)",
    )(command)
    return click.option("--search", help="Only show rows containing this text")(command)


def _direction(desc: bool) -> SortDirection:
    return SortDirection.DESC if desc else SortDirection.ASC


@click.group()
def ledger_group():
    """Ledger reports with running balances."""
    pass


@ledger_group.command("tenant")
@click.option("--tenant", help="Tenant name or ID")
@click.option("--group", is_flag=True, help="Running balance per tenant")
@_sort_options
@date_range_options
@click.pass_context
def tenant_ledger(ctx, start, end, tenant, group, search, sort_key, desc):
    """Rent invoices against tenant payments.

    Examples:
        propledger ledger tenant --this-month
        propledger ledger tenant --tenant "Ali Raza" --start-date 2024-01-01
    """
    tenant_id = _resolve(ctx, tenant, (ContactType.TENANT,))
    service = LedgerReportService(ctx.obj["store"].state)
    rows = service.tenant_ledger(
        start_date=start,
        end_date=end,
        tenant_id=tenant_id,
        group_by_tenant=group,
        search=search,
        sort_key=sort_key,
        direction=_direction(desc),
    )
    echo_ledger(rows, party_label="Tenant")


@ledger_group.command("vendor")
@click.option("--vendor", help="Vendor name or ID")
@click.option("--building", "building_id", help="Building ID")
@click.option(
    "--context",
    type=click.Choice([c.value for c in VendorContext]),
    default=VendorContext.ALL.value,
    show_default=True,
    help="Project bills, rental bills or both",
)
@_sort_options
@date_range_options
@click.pass_context
def vendor_ledger(ctx, start, end, vendor, building_id, context, search, sort_key, desc):
    """Vendor bills against payments, balance per vendor."""
    vendor_id = _resolve(ctx, vendor, (ContactType.VENDOR,))
    service = LedgerReportService(ctx.obj["store"].state)
    rows = service.vendor_ledger(
        start_date=start,
        end_date=end,
        vendor_id=vendor_id,
        building_id=building_id,
        context=VendorContext(context),
        search=search,
        sort_key=sort_key,
        direction=_direction(desc),
    )
    echo_ledger(rows, party_label="Vendor", extra_column="building_name")


@ledger_group.command("owner")
@click.option("--owner", help="Owner name or ID")
@click.option("--building", "building_id", help="Building ID")
@click.option("--group", is_flag=True, help="Running balance per owner")
@_sort_options
@date_range_options
@click.pass_context
def owner_ledger(ctx, start, end, owner, building_id, group, search, sort_key, desc):
    """Rent collected for owners against payouts and owner costs."""
    owner_id = _resolve(ctx, owner, OWNER_TYPES)
    service = LedgerReportService(ctx.obj["store"].state)
    rows = service.owner_payouts(
        start_date=start,
        end_date=end,
        owner_id=owner_id,
        building_id=building_id,
        group_by_owner=group,
        search=search,
        sort_key=sort_key,
        direction=_direction(desc),
    )
    echo_ledger(rows, party_label="Owner", extra_column="property_name")


@ledger_group.command("broker")
@click.option("--broker", help="Broker name or ID")
@_sort_options
@date_range_options
@click.pass_context
def broker_ledger(ctx, start, end, broker, search, sort_key, desc):
    """Broker fees earned against commission payments, balance per broker."""
    broker_id = _resolve(ctx, broker, (ContactType.BROKER, ContactType.DEALER))
    service = LedgerReportService(ctx.obj["store"].state)
    rows = service.broker_fees(
        start_date=start,
        end_date=end,
        broker_id=broker_id,
        search=search,
        sort_key=sort_key,
        direction=_direction(desc),
    )
    echo_ledger(rows, party_label="Broker")


@ledger_group.command("deposits")
@click.option("--owner", help="Owner name or ID")
@click.option("--building", "building_id", help="Building ID")
@_sort_options
@date_range_options
@click.pass_context
def deposit_ledger(ctx, start, end, owner, building_id, search, sort_key, desc):
    """Security deposits held against refunds, deductions and owner payouts."""
    owner_id = _resolve(ctx, owner, OWNER_TYPES)
    service = LedgerReportService(ctx.obj["store"].state)
    rows = service.security_deposits(
        start_date=start,
        end_date=end,
        owner_id=owner_id,
        building_id=building_id,
        search=search,
        sort_key=sort_key,
        direction=_direction(desc),
    )
    echo_ledger(rows, party_label="Owner", extra_column="kind")


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group, name="ledger")
