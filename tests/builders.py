"""Small builders for domain entities used across tests."""

from datetime import date
from decimal import Decimal

from propledger.domain.entities import (
    AgreementStatus,
    Bill,
    Invoice,
    InvoiceType,
    RentalAgreement,
    Transaction,
    TransactionType,
)


def tx(tx_id, day, tx_type, amount, **kwargs):
    return Transaction(
        id=tx_id,
        date=day,
        type=tx_type,
        amount=Decimal(str(amount)),
        **kwargs,
    )


def expense(tx_id, day, amount, **kwargs):
    return tx(tx_id, day, TransactionType.EXPENSE, amount, **kwargs)


def income(tx_id, day, amount, **kwargs):
    return tx(tx_id, day, TransactionType.INCOME, amount, **kwargs)


def transfer(tx_id, day, amount, **kwargs):
    return tx(tx_id, day, TransactionType.TRANSFER, amount, **kwargs)


def invoice(inv_id, number, day, amount, contact_id, **kwargs):
    kwargs.setdefault("invoice_type", InvoiceType.RENTAL)
    return Invoice(
        id=inv_id,
        number=number,
        issue_date=day,
        amount=Decimal(str(amount)),
        contact_id=contact_id,
        **kwargs,
    )


def bill(bill_id, number, day, amount, **kwargs):
    if "paid_amount" in kwargs:
        kwargs["paid_amount"] = Decimal(str(kwargs["paid_amount"]))
    return Bill(
        id=bill_id,
        number=number,
        issue_date=day,
        amount=Decimal(str(amount)),
        **kwargs,
    )


def agreement(agr_id, number, property_id, tenant_id, **kwargs):
    kwargs.setdefault("status", AgreementStatus.ACTIVE)
    kwargs.setdefault("start_date", date(2024, 1, 1))
    kwargs.setdefault("end_date", date(2024, 12, 31))
    kwargs.setdefault("monthly_rent", Decimal("1000"))
    for key in ("broker_fee", "security_deposit", "monthly_rent"):
        if kwargs.get(key) is not None:
            kwargs[key] = Decimal(str(kwargs[key]))
    return RentalAgreement(
        id=agr_id,
        agreement_number=number,
        property_id=property_id,
        tenant_id=tenant_id,
        **kwargs,
    )
