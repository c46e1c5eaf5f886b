"""Application state snapshot."""

from dataclasses import dataclass, field
from typing import Optional

from propledger.domain.entities import (
    Account,
    AgreementSettings,
    Bill,
    Building,
    Category,
    Contact,
    Invoice,
    Project,
    Property,
    RecurringInvoiceTemplate,
    RentalAgreement,
    Transaction,
)


@dataclass(frozen=True)
class AppState:
    """Immutable snapshot of every collection the reports read.

    A new snapshot is produced for each dispatched action; report services
    hold on to the snapshot they were given.
    """

    transactions: tuple[Transaction, ...] = ()
    invoices: tuple[Invoice, ...] = ()
    bills: tuple[Bill, ...] = ()
    rental_agreements: tuple[RentalAgreement, ...] = ()
    recurring_templates: tuple[RecurringInvoiceTemplate, ...] = ()
    projects: tuple[Project, ...] = ()
    categories: tuple[Category, ...] = ()
    accounts: tuple[Account, ...] = ()
    contacts: tuple[Contact, ...] = ()
    properties: tuple[Property, ...] = ()
    buildings: tuple[Building, ...] = ()
    agreement_settings: AgreementSettings = field(default_factory=AgreementSettings)

    def get_property(self, property_id: Optional[str]) -> Optional[Property]:
        return _find(self.properties, property_id)

    def get_project(self, project_id: Optional[str]) -> Optional[Project]:
        return _find(self.projects, project_id)

    def get_contact(self, contact_id: Optional[str]) -> Optional[Contact]:
        return _find(self.contacts, contact_id)

    def get_agreement(self, agreement_id: Optional[str]) -> Optional[RentalAgreement]:
        return _find(self.rental_agreements, agreement_id)

    def get_category(self, category_id: Optional[str]) -> Optional[Category]:
        return _find(self.categories, category_id)


def _find(items, item_id):
    if item_id is None:
        return None
    for item in items:
        if item.id == item_id:
            return item
    return None
