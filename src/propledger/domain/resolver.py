"""Entity resolution for report rows.

Reports carry string id references (contact, property, building, bill,
invoice). Deleted entities must not break a report, so every lookup here
degrades to a placeholder label instead of raising.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from propledger.domain.entities import (
    Bill,
    Contact,
    Invoice,
    Property,
    RentalAgreement,
    Transaction,
)

if TYPE_CHECKING:
    from propledger.store.state import AppState

UNKNOWN = "Unknown"


class EntityResolver:
    """Resolve display names and linked attributes from a state snapshot."""

    def __init__(self, state: AppState):
        """Initialize resolver.

        Args:
            state: Application state snapshot
        """
        self.state = state
        self._contacts = {c.id: c for c in state.contacts}
        self._properties = {p.id: p for p in state.properties}
        self._buildings = {b.id: b for b in state.buildings}
        self._bills = {b.id: b for b in state.bills}
        self._invoices = {i.id: i for i in state.invoices}
        self._agreements = {a.id: a for a in state.rental_agreements}
        self._categories = {c.id: c for c in state.categories}

    def contact(self, contact_id: Optional[str]) -> Optional[Contact]:
        if contact_id is None:
            return None
        return self._contacts.get(contact_id)

    def property(self, property_id: Optional[str]) -> Optional[Property]:
        if property_id is None:
            return None
        return self._properties.get(property_id)

    def bill(self, bill_id: Optional[str]) -> Optional[Bill]:
        if bill_id is None:
            return None
        return self._bills.get(bill_id)

    def invoice(self, invoice_id: Optional[str]) -> Optional[Invoice]:
        if invoice_id is None:
            return None
        return self._invoices.get(invoice_id)

    def agreement(self, agreement_id: Optional[str]) -> Optional[RentalAgreement]:
        if agreement_id is None:
            return None
        return self._agreements.get(agreement_id)

    def contact_name(self, contact_id: Optional[str], role_label: Optional[str] = None) -> str:
        """Name of a contact.

        Args:
            contact_id: Contact ID
            role_label: When given, a missing contact reads
                "Unknown/Deleted <role_label>" instead of "Unknown"
        """
        contact = self.contact(contact_id)
        if contact is not None:
            return contact.name
        if role_label:
            return f"{UNKNOWN}/Deleted {role_label}"
        return UNKNOWN

    def property_name(self, property_id: Optional[str], default: str = UNKNOWN) -> str:
        prop = self.property(property_id)
        return prop.name if prop is not None else default

    def category_name(self, category_id: Optional[str], default: str = "") -> str:
        if category_id is None:
            return default
        category = self._categories.get(category_id)
        return category.name if category is not None else default

    def building_name(self, building_id: Optional[str], default: str = "") -> str:
        if building_id is None:
            return default
        building = self._buildings.get(building_id)
        return building.name if building is not None else default

    def building_id_for(
        self, building_id: Optional[str], property_id: Optional[str] = None
    ) -> Optional[str]:
        """Explicit building, else the building of the property."""
        if building_id:
            return building_id
        prop = self.property(property_id)
        return prop.building_id if prop is not None else None

    def building_name_for(
        self,
        building_id: Optional[str],
        property_id: Optional[str] = None,
        default: str = "",
    ) -> str:
        return self.building_name(self.building_id_for(building_id, property_id), default)

    def owner_id_for_property(self, property_id: Optional[str]) -> Optional[str]:
        prop = self.property(property_id)
        return prop.owner_id if prop is not None else None

    def owner_id_for_agreement(self, agreement: RentalAgreement) -> Optional[str]:
        """Owner an agreement belongs to.

        Agreements stamped at an ownership transfer keep the owner they had
        while active; others follow the property's current owner.
        """
        if agreement.owner_id:
            return agreement.owner_id
        return self.owner_id_for_property(agreement.property_id)

    def owner_id_for_transaction(self, tx: Transaction) -> Optional[str]:
        """Owner a property transaction is attributed to."""
        agreement = self.agreement(tx.agreement_id)
        if agreement is not None and agreement.owner_id:
            return agreement.owner_id
        return self.owner_id_for_property(self.property_id_for(tx))

    def property_id_for(self, tx: Transaction) -> Optional[str]:
        """Property of a transaction, else of its linked invoice or bill."""
        if tx.property_id:
            return tx.property_id
        invoice = self.invoice(tx.invoice_id)
        if invoice is not None and invoice.property_id:
            return invoice.property_id
        bill = self.bill(tx.bill_id)
        if bill is not None:
            return bill.property_id
        return None

    def project_id_for(self, tx: Transaction) -> Optional[str]:
        """Project of a transaction, else of its linked bill, else invoice."""
        if tx.project_id:
            return tx.project_id
        bill = self.bill(tx.bill_id)
        if bill is not None and bill.project_id:
            return bill.project_id
        invoice = self.invoice(tx.invoice_id)
        if invoice is not None:
            return invoice.project_id
        return None

    def category_id_for(self, tx: Transaction) -> Optional[str]:
        """Category of a transaction, else of its linked bill, else invoice."""
        if tx.category_id:
            return tx.category_id
        bill = self.bill(tx.bill_id)
        if bill is not None and bill.category_id:
            return bill.category_id
        invoice = self.invoice(tx.invoice_id)
        if invoice is not None:
            return invoice.category_id
        return None
