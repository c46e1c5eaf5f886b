"""Project-management fee commands."""

import click

from propledger.cli.date_filters import date_range_options
from propledger.cli.error_handling import handle_domain_error
from propledger.cli.output import echo_ledger
from propledger.domain.entities import ContactType, PMFrequency
from propledger.domain.errors import DomainError
from propledger.domain.pm_fee import FeeAccrualService, PMConfigService
from propledger.utils.contact_resolver import resolve_contact
from propledger.utils.date_parser import parse_date


@click.group()
def pm_group():
    """Project-management fee accounting."""
    pass


@pm_group.command("financials")
@click.argument("project_id", metavar="PROJECT_ID")
@click.option("--as-of", help="Only count transactions up to this date")
@click.pass_context
def financials(ctx, project_id: str, as_of: str | None):
    """Show the fee base, accrued fee and payments of a project."""
    service = FeeAccrualService(ctx.obj["store"].state)
    try:
        as_of_date = parse_date(as_of) if as_of else None
        result = service.compute_financials(project_id, as_of=as_of_date)
    except ValueError as e:
        handle_domain_error(ctx, e)

    project = service.get_project(project_id)
    config = service.config_of(project)
    click.echo(f"\nProject: {project.name} ({config.rate}% {config.frequency.value})")
    click.echo("-" * 40)
    click.echo(f"{'Total expense':<20} {result.total_expense:>18,.2f}")
    click.echo(f"{'Excluded cost':<20} {result.excluded_cost:>18,.2f}")
    click.echo(f"{'Net fee base':<20} {result.net_base:>18,.2f}")
    click.echo(f"{'Accrued fee':<20} {result.accrued:>18,.2f}")
    click.echo(f"{'Paid':<20} {result.paid:>18,.2f}")
    click.echo(f"{'Balance':<20} {result.balance:>18,.2f}")


@pm_group.command("ledger")
@click.argument("project_id", metavar="PROJECT_ID")
@click.option("--search", help="Only show rows containing this text")
@date_range_options
@click.pass_context
def pm_ledger(ctx, start, end, project_id: str, search: str | None):
    """Show allocations against payments of a project."""
    service = FeeAccrualService(ctx.obj["store"].state)
    try:
        rows = service.pm_ledger(project_id, start_date=start, end_date=end, search=search)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_ledger(rows, extra_column="type")


@pm_group.command("cycles")
@click.argument("project_id", metavar="PROJECT_ID")
@click.pass_context
def cycles(ctx, project_id: str):
    """Show unpaid allocations, cycles awaiting allocation and the current cycle."""
    service = FeeAccrualService(ctx.obj["store"].state)
    try:
        unpaid = service.unpaid_allocations(project_id)
        pending = service.pending_cycles(project_id)
        unallocated = service.unallocated_amount(project_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo("\nUnpaid allocations:")
    if not unpaid:
        click.echo("  None")
    for allocation in unpaid:
        click.echo(
            f"  {allocation.cycle_id:<10} {allocation.amount:>14,.2f} "
            f"paid {allocation.paid_amount:>14,.2f} due {allocation.unpaid:>14,.2f}"
        )

    click.echo("\nCycles awaiting allocation:")
    if not pending:
        click.echo("  None")
    for cycle in pending:
        click.echo(
            f"  {cycle.label:<18} {cycle.start_date} to {cycle.end_date} "
            f"base {cycle.fee_base:>14,.2f} fee {cycle.amount:>12,.2f}"
        )

    click.echo(f"\nCurrent cycle, not yet allocated: {unallocated:,.2f}")


@pm_group.command("config")
@click.argument("project_id", metavar="PROJECT_ID")
@click.option("--rate", required=True, help="Fee rate in percent")
@click.option(
    "--frequency",
    type=click.Choice([f.value for f in PMFrequency], case_sensitive=False),
    help="Allocation cycle; keeps the current cycle when omitted",
)
@click.option(
    "--exclude",
    "excluded",
    multiple=True,
    help="Category ID excluded from the fee base (repeatable)",
)
@click.option("--use-defaults", is_flag=True, help="Exclude the default system categories")
@click.option("--vendor", help="Vendor allocation bills are raised against (name or ID)")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def config(ctx, project_id, rate, frequency, excluded, use_defaults, vendor, yes):
    """Set the PM fee configuration of a project.

    Examples:
        propledger pm config p1 --rate 10 --frequency Monthly
        propledger pm config p1 --rate 7.5 --use-defaults --yes
    """
    store = ctx.obj["store"]
    fees = FeeAccrualService(store.state)

    excluded_ids = tuple(excluded) if excluded else None
    if use_defaults:
        excluded_ids = tuple(sorted(fees.classifier.legacy_default_ids())) + tuple(excluded)

    vendor_id = None
    if vendor is not None:
        try:
            vendor_id = resolve_contact(store.state.contacts, vendor, (ContactType.VENDOR,))
        except ValueError as e:
            handle_domain_error(ctx, e)

    def confirm(message: str) -> bool:
        return yes or click.confirm(message, default=False)

    frequency_value = None
    if frequency is not None:
        frequency_value = next(f for f in PMFrequency if f.value.lower() == frequency.lower())
    try:
        saved = PMConfigService(store).update_config(
            project_id,
            rate,
            frequency=frequency_value,
            excluded_category_ids=excluded_ids,
            vendor_id=vendor_id,
            confirm=confirm,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    if saved:
        click.echo(f"Saved PM configuration for project {project_id}")
    else:
        click.echo("Cancelled.")


def register_commands(cli):
    """Register PM commands with main CLI."""
    cli.add_command(pm_group, name="pm")
