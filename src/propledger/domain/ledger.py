"""Ledger aggregation with running balances.

Every ledger report in propledger goes through ``aggregate``: records are
date-filtered, ordered, walked once to accumulate ``debit - credit``, and
only then narrowed by free-text search. Searching therefore hides rows but
never changes the balance shown on the rows that remain.
"""

import logging
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Sequence

from propledger.domain.entities import LedgerEntry, LedgerRow, LedgerTotals, SortDirection
from propledger.utils.amount_parser import ZERO, coerce_amount
from propledger.utils.date_parser import DateLike, as_moment, in_range

logger = logging.getLogger(__name__)

GroupKey = Callable[[LedgerEntry], Any]

DEFAULT_SEARCH_FIELDS = ("particulars", "party_name")


def _safe_amount(value: Any, entry: LedgerEntry) -> Decimal:
    if isinstance(value, Decimal) and value.is_finite():
        return value
    return coerce_amount(value, f"(ledger entry {entry.source_id or entry.particulars!r})")


def _column_value(entry: LedgerEntry, key: str) -> Any:
    if key != "extra" and hasattr(entry, key):
        return getattr(entry, key)
    return entry.extra.get(key)


def _sort_value(value: Any) -> tuple:
    # Missing values sort last in ascending order
    if value is None:
        return (True, 0)
    if isinstance(value, str):
        return (False, value.lower())
    return (False, value)


def _chronological_key(entry: LedgerEntry) -> tuple:
    return (as_moment(entry.date), entry.priority)


def sort_entries(
    entries: Iterable[LedgerEntry],
    sort_key: str = "date",
    direction: SortDirection = SortDirection.ASC,
) -> list[LedgerEntry]:
    """Stable sort of entries by a column.

    Dates compare as moments with ``priority`` breaking ties; strings
    compare case-insensitively.
    """
    reverse = direction is SortDirection.DESC
    if sort_key == "date":
        return sorted(entries, key=_chronological_key, reverse=reverse)
    return sorted(
        entries,
        key=lambda e: _sort_value(_column_value(e, sort_key)),
        reverse=reverse,
    )


def aggregate(
    entries: Iterable[LedgerEntry],
    start_date: Optional[DateLike] = None,
    end_date: Optional[DateLike] = None,
    group_key: Optional[GroupKey] = None,
    sort_key: str = "date",
    direction: SortDirection = SortDirection.ASC,
    search: Optional[str] = None,
    search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
) -> list[LedgerRow]:
    """Build ledger rows with running balances.

    Args:
        entries: Dated debit/credit records
        start_date: Inclusive start day (start of day)
        end_date: Inclusive end day (end of day)
        group_key: When given, rows are ordered by (group, date) and the
            running balance restarts at 0 for each group. Keys must be
            mutually comparable (e.g. all strings or all tuples).
        sort_key: Column to order by when not grouping
        direction: Sort direction when not grouping
        search: Case-insensitive text to keep rows by, applied after
            balances are computed
        search_fields: Columns the search text is looked up in

    Returns:
        Ledger rows in display order
    """
    in_window = [e for e in entries if in_range(e.date, start_date, end_date)]

    if group_key is not None:
        ordered = sorted(in_window, key=lambda e: (group_key(e),) + _chronological_key(e))
    else:
        ordered = sort_entries(in_window, sort_key, direction)

    rows: list[LedgerRow] = []
    running = ZERO
    current_group: Optional[str] = None
    for index, entry in enumerate(ordered):
        if group_key is not None:
            group = group_key(entry)
            if index == 0 or group != current_group:
                current_group = group
                running = ZERO
        running += _safe_amount(entry.debit, entry) - _safe_amount(entry.credit, entry)
        rows.append(LedgerRow(entry=entry, balance=running))

    logger.debug(
        "Aggregated %d of %d ledger entries (grouped=%s)",
        len(rows),
        len(in_window),
        group_key is not None,
    )
    return filter_rows(rows, search, search_fields)


def filter_rows(
    rows: Sequence[LedgerRow],
    search: Optional[str],
    fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
) -> list[LedgerRow]:
    """Keep rows whose columns contain the search text (case-insensitive)."""
    if not search:
        return list(rows)
    needle = search.lower()
    kept = []
    for row in rows:
        for name in fields:
            value = row.get(name)
            if value is not None and needle in str(value).lower():
                kept.append(row)
                break
    return kept


def sort_rows(
    rows: Sequence[LedgerRow],
    sort_key: str = "date",
    direction: SortDirection = SortDirection.ASC,
) -> list[LedgerRow]:
    """Re-order already balanced rows for display, leaving balances as computed."""
    reverse = direction is SortDirection.DESC
    if sort_key == "date":
        return sorted(rows, key=lambda r: _chronological_key(r.entry), reverse=reverse)
    return sorted(rows, key=lambda r: _sort_value(r.get(sort_key)), reverse=reverse)


def ledger_totals(rows: Iterable[LedgerRow]) -> LedgerTotals:
    """Sum the debit and credit columns of a ledger."""
    debit = ZERO
    credit = ZERO
    for row in rows:
        debit += _safe_amount(row.debit, row.entry)
        credit += _safe_amount(row.credit, row.entry)
    return LedgerTotals(debit=debit, credit=credit)
