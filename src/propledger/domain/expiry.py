"""Agreement expiry report."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Optional

from dateutil.relativedelta import relativedelta

from propledger.domain.entities import (
    AgreementExpiryRow,
    AgreementStatus,
    ExpiryBucket,
    SortDirection,
)
from propledger.domain.resolver import EntityResolver

if TYPE_CHECKING:
    from propledger.store.state import AppState

SORT_KEYS = ("property_name", "tenant_name", "monthly_rent", "end_date", "days_until_expiry")

# Agreements ending within this many months of today are reported
EXPIRY_WINDOW_MONTHS = 3


def expiry_bucket(days_until_expiry: int) -> ExpiryBucket:
    if days_until_expiry <= 30:
        return ExpiryBucket.ONE_MONTH
    if days_until_expiry <= 60:
        return ExpiryBucket.TWO_MONTHS
    return ExpiryBucket.THREE_MONTHS


def days_until(end_date: date, today: date) -> int:
    """Days left in an agreement, counting its last day in full."""
    return (end_date - today).days + 1


def expiring_agreements(
    state: AppState,
    today: Optional[date] = None,
    building_id: Optional[str] = None,
    search: Optional[str] = None,
    sort_key: str = "days_until_expiry",
    direction: SortDirection = SortDirection.ASC,
) -> list[AgreementExpiryRow]:
    """Active agreements ending between today and three months from today.

    Args:
        state: Application state snapshot
        today: Reference day (defaults to today)
        building_id: Only agreements for properties in this building
        search: Case-insensitive text matched against property name,
            tenant name and agreement number
        sort_key: One of SORT_KEYS
        direction: Sort direction

    Raises:
        ValueError: If the sort key is not supported
    """
    if sort_key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: '{sort_key}'. Supported keys: {', '.join(SORT_KEYS)}")

    today = today or date.today()
    window_end = today + relativedelta(months=EXPIRY_WINDOW_MONTHS)
    resolver = EntityResolver(state)

    rows = []
    for agreement in state.rental_agreements:
        if agreement.status is not AgreementStatus.ACTIVE:
            continue
        if not today <= agreement.end_date < window_end:
            continue
        prop = resolver.property(agreement.property_id)
        agreement_building = prop.building_id if prop is not None else None
        if building_id is not None and agreement_building != building_id:
            continue

        days = days_until(agreement.end_date, today)
        rows.append(
            AgreementExpiryRow(
                agreement_id=agreement.id,
                agreement_number=agreement.agreement_number,
                property_name=prop.name if prop is not None else "Unknown",
                building_name=resolver.building_name(agreement_building, "N/A"),
                building_id=agreement_building,
                tenant_name=resolver.contact_name(agreement.tenant_id),
                monthly_rent=agreement.monthly_rent,
                end_date=agreement.end_date,
                days_until_expiry=days,
                bucket=expiry_bucket(days),
            )
        )

    if search:
        needle = search.lower()
        rows = [
            row
            for row in rows
            if needle in row.property_name.lower()
            or needle in row.tenant_name.lower()
            or needle in row.agreement_number.lower()
        ]

    def key(row: AgreementExpiryRow):
        value = getattr(row, sort_key)
        return value.lower() if isinstance(value, str) else value

    return sorted(rows, key=key, reverse=direction is SortDirection.DESC)


def bucket_counts(rows: list[AgreementExpiryRow]) -> dict[ExpiryBucket, int]:
    """Number of expiring agreements per bucket, every bucket present."""
    counts = {bucket: 0 for bucket in ExpiryBucket}
    for row in rows:
        counts[row.bucket] += 1
    return counts
