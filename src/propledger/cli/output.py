"""Plain-text rendering of ledgers."""

from decimal import Decimal
from typing import Sequence

import click

from propledger.domain.entities import LedgerRow
from propledger.domain.ledger import ledger_totals
from propledger.utils.date_parser import as_date


def format_amount(amount: Decimal) -> str:
    if not amount:
        return "-"
    return f"{amount:,.2f}"


def echo_ledger(rows: Sequence[LedgerRow], party_label: str | None = None, extra_column: str | None = None) -> None:
    """Print ledger rows with debit, credit and balance columns and totals."""
    if not rows:
        click.echo("No entries found.")
        return

    header = f"{'Date':<12}"
    if party_label:
        header += f" {party_label:<24}"
    if extra_column:
        header += f" {extra_column.replace('_', ' ').title():<20}"
    header += f" {'Particulars':<40} {'Debit':>14} {'Credit':>14} {'Balance':>14}"
    click.echo(header)
    click.echo("-" * len(header))

    for row in rows:
        line = f"{as_date(row.date).isoformat():<12}"
        if party_label:
            line += f" {row.party_name[:24]:<24}"
        if extra_column:
            line += f" {str(row.get(extra_column, ''))[:20]:<20}"
        line += (
            f" {row.particulars[:40]:<40}"
            f" {format_amount(row.debit):>14}"
            f" {format_amount(row.credit):>14}"
            f" {row.balance:>14,.2f}"
        )
        click.echo(line)

    totals = ledger_totals(rows)
    click.echo("-" * len(header))
    click.echo(
        f"Total debit: {totals.debit:,.2f}  Total credit: {totals.credit:,.2f}  "
        f"Net: {totals.net:,.2f}"
    )
