"""Closed set of state mutations.

Every change to application state is one of these actions, dispatched on a
``StateStore``. ``Action`` is the union of all of them.
"""

from dataclasses import dataclass
from typing import Union

from propledger.domain.entities import (
    AgreementSettings,
    Project,
    Property,
    RecurringInvoiceTemplate,
    RentalAgreement,
    Transaction,
)


@dataclass(frozen=True)
class UpdateProperty:
    property: Property


@dataclass(frozen=True)
class UpdateRentalAgreement:
    agreement: RentalAgreement


@dataclass(frozen=True)
class AddRentalAgreement:
    agreement: RentalAgreement


@dataclass(frozen=True)
class UpdateRecurringTemplate:
    template: RecurringInvoiceTemplate


@dataclass(frozen=True)
class UpdateAgreementSettings:
    settings: AgreementSettings


@dataclass(frozen=True)
class UpdateProject:
    project: Project


@dataclass(frozen=True)
class AddTransaction:
    transaction: Transaction


@dataclass(frozen=True)
class UpdateTransaction:
    transaction: Transaction


@dataclass(frozen=True)
class DeleteTransaction:
    transaction_id: str


Action = Union[
    UpdateProperty,
    UpdateRentalAgreement,
    AddRentalAgreement,
    UpdateRecurringTemplate,
    UpdateAgreementSettings,
    UpdateProject,
    AddTransaction,
    UpdateTransaction,
    DeleteTransaction,
]
