"""Category and account balance commands."""

import click

from propledger.cli.date_filters import date_range_options
from propledger.domain.summary import BalanceService

INDENT_SIZE = 4


@click.group()
def categories_group():
    """Derived category and account balances."""
    pass


@categories_group.command("balances")
@click.option("--project", "project_id", help="Only transactions of this project ID")
@click.option("--show-empty", is_flag=True, help="Include categories without transactions")
@date_range_options
@click.pass_context
def balances(ctx, start, end, project_id, show_empty):
    """Show category totals, each including its subcategories."""
    service = BalanceService(ctx.obj["store"].state)
    rows = service.category_balances(start_date=start, end_date=end, project_id=project_id)
    rows = [row for row in rows if show_empty or row["count"]]
    if not rows:
        click.echo("No transactions found.")
        return

    for row in rows:
        indent_str = " " * (INDENT_SIZE * row["depth"])
        category_width = 50 - len(indent_str)
        click.echo(f"{indent_str}{row['category_name']:<{category_width}} {row['total']:>18,.2f}")


@categories_group.command("accounts")
@click.option("--as-of", "as_of", help="Balance as of this date")
@click.pass_context
def accounts(ctx, as_of):
    """Show the balance of every account."""
    from propledger.utils.date_parser import parse_date

    state = ctx.obj["store"].state
    end = None
    if as_of:
        try:
            end = parse_date(as_of)
        except ValueError as e:
            click.echo(f"Error: Invalid date: {e}", err=True)
            ctx.exit(1)

    balances = BalanceService(state).account_balances(end_date=end)
    if not balances:
        click.echo("No accounts found.")
        return
    names = {a.id: a.name for a in state.accounts}
    for account_id, balance in balances.items():
        click.echo(f"{names.get(account_id, account_id):<40} {balance:>18,.2f}")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(categories_group, name="categories")
