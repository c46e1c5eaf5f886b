"""Rental agreement commands."""

from datetime import date

import click

from propledger.cli.error_handling import handle_domain_error
from propledger.domain.entities import ContactType, SortDirection
from propledger.domain.errors import DomainError
from propledger.domain.expiry import SORT_KEYS, bucket_counts, expiring_agreements
from propledger.domain.transfer import DEFAULT_REASON, OwnershipTransferService
from propledger.utils.contact_resolver import resolve_contact
from propledger.utils.date_parser import parse_date


@click.group()
def agreements_group():
    """Rental agreement reports and ownership transfer."""
    pass


@agreements_group.command("expiring")
@click.option("--building", "building_id", help="Building ID")
@click.option("--search", help="Match property, tenant or agreement number")
@click.option(
    "--sort",
    "sort_key",
    type=click.Choice(SORT_KEYS),
    default="days_until_expiry",
    show_default=True,
)
@click.option("--desc", is_flag=True, help="Sort descending")
@click.pass_context
def expiring(ctx, building_id, search, sort_key, desc):
    """List active agreements ending within three months."""
    rows = expiring_agreements(
        ctx.obj["store"].state,
        building_id=building_id,
        search=search,
        sort_key=sort_key,
        direction=SortDirection.DESC if desc else SortDirection.ASC,
    )
    if not rows:
        click.echo("No agreements expiring in the next three months.")
        return

    counts = bucket_counts(rows)
    click.echo("  ".join(f"{bucket.value}: {count}" for bucket, count in counts.items()))
    click.echo("-" * 100)
    for row in rows:
        click.echo(
            f"{row.agreement_number:<12} {row.property_name[:20]:<20} {row.building_name[:14]:<14} "
            f"{row.tenant_name[:20]:<20} {row.monthly_rent:>12,.2f} {row.end_date} "
            f"{row.days_until_expiry:>4}d {row.bucket.value}"
        )


@agreements_group.command("transfer")
@click.argument("property_id", metavar="PROPERTY_ID")
@click.argument("new_owner", metavar="NEW_OWNER")
@click.option("--date", "transfer_date", help="Transfer date (defaults to today)")
@click.option("--reason", default=DEFAULT_REASON, show_default=True, help="Reason for the transfer")
@click.option("--no-renew", is_flag=True, help="Leave active agreements as they are")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def transfer(ctx, property_id, new_owner, transfer_date, reason, no_renew, yes):
    """Transfer PROPERTY_ID to NEW_OWNER (owner or client name or ID).

    Active agreements are renewed under the new owner unless --no-renew is
    given. Security deposits must be moved by hand.
    """
    store = ctx.obj["store"]
    try:
        owner_id = resolve_contact(
            store.state.contacts, new_owner, (ContactType.OWNER, ContactType.CLIENT)
        )
        day = parse_date(transfer_date) if transfer_date else date.today()
    except ValueError as e:
        handle_domain_error(ctx, e)

    service = OwnershipTransferService(store)
    try:
        message = service.confirmation_message(
            property_id, owner_id, day, renew_agreements=not no_renew
        )
        if not yes and not click.confirm(message, default=False):
            click.echo("Cancelled.")
            return
        result = service.transfer_property(
            property_id, owner_id, day, reason=reason, renew_agreements=not no_renew
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Transferred property {result.property_id} to {result.new_owner_id}")
    for old_id, new_id in result.renewed:
        click.echo(f"  Renewed agreement {old_id} as {new_id}")
    if result.backfilled_agreement_ids:
        click.echo(
            f"  Preserved owner on {len(result.backfilled_agreement_ids)} historical agreement(s)"
        )
    for notice in result.notices:
        click.echo(notice)


def register_commands(cli):
    """Register agreement commands with main CLI."""
    cli.add_command(agreements_group, name="agreements")
