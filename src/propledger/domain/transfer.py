"""Property ownership transfer."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from propledger.domain.entities import (
    AgreementSettings,
    AgreementStatus,
    Contact,
    Property,
    RentalAgreement,
    TransferResult,
)
from propledger.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    contact_not_found,
    owner_not_eligible,
    property_not_found,
    transfer_to_current_owner,
)
from propledger.store.actions import (
    AddRentalAgreement,
    UpdateAgreementSettings,
    UpdateProperty,
    UpdateRecurringTemplate,
    UpdateRentalAgreement,
)
from propledger.utils.amount_parser import ZERO, coerce_amount

if TYPE_CHECKING:
    from propledger.store.base import StateStore
    from propledger.store.state import AppState

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Property Sale"


def _new_id() -> str:
    return uuid.uuid4().hex


def append_note(description: Optional[str], note: str) -> str:
    """Append a note paragraph to a free-text description."""
    if description:
        return f"{description}\n\n{note}"
    return note


def next_agreement_number(
    settings: AgreementSettings, agreements: Iterable[RentalAgreement]
) -> str:
    """Next free sequential agreement number.

    The counter in the settings is a floor; numbers already taken by
    agreements carrying the same prefix push it further.
    """
    number = settings.next_number
    for agreement in agreements:
        if not agreement.agreement_number.startswith(settings.prefix):
            continue
        match = re.match(r"\d+", agreement.agreement_number[len(settings.prefix):])
        if match is not None and int(match.group()) >= number:
            number = int(match.group()) + 1
    return f"{settings.prefix}{number:0{settings.padding}d}"


def stamp_historical_owner(
    agreement: RentalAgreement, owner_id: str, note: str
) -> Optional[RentalAgreement]:
    """Record the owner a historical agreement was made with.

    Returns the stamped agreement, or None when the agreement already
    carries an owner and must be left alone.
    """
    if agreement.owner_id:
        return None
    return replace(
        agreement,
        owner_id=owner_id,
        description=append_note(agreement.description, note),
    )


class OwnershipTransferService:
    """Service transferring a property to a new owner."""

    def __init__(self, store: StateStore, id_factory: Callable[[], str] = _new_id):
        """Initialize transfer service.

        Args:
            store: State store every change is dispatched on
            id_factory: Generates ids for renewed agreements
        """
        self.store = store
        self.id_factory = id_factory

    @property
    def state(self) -> AppState:
        return self.store.state

    def _validate(self, property_id: str, new_owner_id: str) -> tuple[Property, Contact]:
        prop = self.state.get_property(property_id)
        if prop is None:
            raise NotFoundError(property_not_found(property_id))

        new_owner = self.state.get_contact(new_owner_id)
        if new_owner is None:
            raise NotFoundError(contact_not_found(new_owner_id))
        if not new_owner.can_own_property:
            raise ValidationError(owner_not_eligible(new_owner_id, new_owner.type.value))
        if prop.owner_id == new_owner_id:
            raise ConflictError(transfer_to_current_owner(property_id, new_owner_id))
        return prop, new_owner

    def property_agreements(self, property_id: str) -> tuple[list[RentalAgreement], list[RentalAgreement]]:
        """Active and historical agreements of a property."""
        active, historical = [], []
        for agreement in self.state.rental_agreements:
            if agreement.property_id != property_id:
                continue
            if agreement.status.is_historical:
                historical.append(agreement)
            else:
                active.append(agreement)
        return active, historical

    def confirmation_message(
        self,
        property_id: str,
        new_owner_id: str,
        transfer_date: date,
        renew_agreements: bool = True,
    ) -> str:
        """Summary of what a transfer will do, for the user to confirm.

        Raises:
            NotFoundError: If the property or new owner does not exist
            ValidationError: If the new owner cannot own property
            ConflictError: If the new owner already owns the property
        """
        prop, new_owner = self._validate(property_id, new_owner_id)
        old_owner = self.state.get_contact(prop.owner_id)
        active, historical = self.property_agreements(property_id)

        lines = [
            f"Are you sure you want to transfer this property to {new_owner.name}?",
            "",
            f"Property: {prop.name}",
            f"Current Owner: {old_owner.name if old_owner else 'Unknown'}",
            f"New Owner: {new_owner.name}",
            f"Transfer Date: {transfer_date.isoformat()}",
            "",
        ]
        if renew_agreements and active:
            lines.append(f"This will renew {len(active)} active agreement(s).")
        if historical:
            lines.append(
                f"{len(historical)} historical agreement(s) will have their owner records preserved."
            )
        if not active and not historical:
            lines.append(
                "No agreements found for this property. Only property ownership will be transferred."
            )
        deposit_total = self._deposit_total(active)
        if deposit_total > ZERO:
            lines.append(security_deposit_notice(deposit_total))
        return "\n".join(lines)

    @staticmethod
    def _deposit_total(agreements: Iterable[RentalAgreement]) -> Decimal:
        return sum(
            (coerce_amount(a.security_deposit, f"(agreement {a.id})") for a in agreements),
            ZERO,
        )

    def transfer_property(
        self,
        property_id: str,
        new_owner_id: str,
        transfer_date: date,
        reason: str = DEFAULT_REASON,
        renew_agreements: bool = True,
    ) -> TransferResult:
        """Transfer a property to a new owner.

        Historical agreements keep the old owner on record. With renewal,
        every active agreement is closed as renewed under the old owner and
        replaced by a new agreement for the new owner from the transfer date.
        Security deposits are not moved.

        Args:
            property_id: Property ID
            new_owner_id: Contact ID of the new owner or client
            transfer_date: Day the transfer takes effect
            reason: Reason recorded on the property
            renew_agreements: Renew active agreements under the new owner

        Returns:
            TransferResult describing every change made

        Raises:
            NotFoundError: If the property or new owner does not exist
            ValidationError: If the new owner cannot own property
            ConflictError: If the new owner already owns the property
        """
        prop, new_owner = self._validate(property_id, new_owner_id)
        old_owner_id = prop.owner_id
        old_owner = self.state.get_contact(old_owner_id)
        old_owner_name = old_owner.name if old_owner else None
        day = transfer_date.isoformat()
        active, historical = self.property_agreements(property_id)

        logger.info(
            "Transferring property %s from %s to %s on %s",
            property_id,
            old_owner_id,
            new_owner_id,
            day,
        )

        self.store.dispatch(
            UpdateProperty(
                replace(
                    prop,
                    owner_id=new_owner_id,
                    description=append_note(
                        prop.description,
                        f"[TRANSFERRED] Previously owned by {old_owner_name or 'Unknown'} "
                        f"until {day}. Reason: {reason}",
                    ),
                )
            )
        )

        backfilled = []
        ownership_note = (
            f"[OWNERSHIP] Property ownership changed on {day}. This agreement was with "
            f"{old_owner_name or 'previous owner'} when active."
        )
        for agreement in historical:
            stamped = stamp_historical_owner(agreement, old_owner_id, ownership_note)
            if stamped is None:
                continue
            self.store.dispatch(UpdateRentalAgreement(stamped))
            backfilled.append(agreement.id)

        renewed = []
        deactivated = []
        if renew_agreements:
            for agreement in active:
                new_id = self._renew(
                    agreement, old_owner_id, old_owner_name, new_owner, transfer_date, deactivated
                )
                renewed.append((agreement.id, new_id))

        deposit_total = self._deposit_total(active)
        notices = ()
        if deposit_total > ZERO:
            notices = (security_deposit_notice(deposit_total),)

        logger.info(
            "Transferred property %s: %d agreement(s) renewed, %d backfilled",
            property_id,
            len(renewed),
            len(backfilled),
        )
        return TransferResult(
            property_id=property_id,
            old_owner_id=old_owner_id,
            new_owner_id=new_owner_id,
            renewed=tuple(renewed),
            backfilled_agreement_ids=tuple(backfilled),
            deactivated_template_ids=tuple(deactivated),
            security_deposit_total=deposit_total,
            notices=notices,
        )

    def _renew(
        self,
        agreement: RentalAgreement,
        old_owner_id: str,
        old_owner_name: Optional[str],
        new_owner: Contact,
        transfer_date: date,
        deactivated: list[str],
    ) -> str:
        day = transfer_date.isoformat()
        self.store.dispatch(
            UpdateRentalAgreement(
                replace(
                    agreement,
                    status=AgreementStatus.RENEWED,
                    owner_id=old_owner_id,
                    description=append_note(
                        agreement.description,
                        f"[TRANSFERRED] Agreement ended due to property transfer on {day}. "
                        f"Property was transferred from {old_owner_name or 'previous owner'} "
                        f"to {new_owner.name}.",
                    ),
                )
            )
        )

        for template in self.state.recurring_templates:
            if template.agreement_id == agreement.id and template.active:
                self.store.dispatch(UpdateRecurringTemplate(replace(template, active=False)))
                deactivated.append(template.id)

        # Numbering is read from the current snapshot so consecutive renewals
        # get consecutive numbers.
        settings = self.state.agreement_settings
        number = next_agreement_number(settings, self.state.rental_agreements)
        new_agreement = RentalAgreement(
            id=self.id_factory(),
            agreement_number=number,
            property_id=agreement.property_id,
            tenant_id=agreement.tenant_id,
            status=AgreementStatus.ACTIVE,
            start_date=transfer_date,
            end_date=agreement.end_date,
            monthly_rent=agreement.monthly_rent,
            broker_id=agreement.broker_id,
            broker_fee=agreement.broker_fee,
            security_deposit=agreement.security_deposit,
            owner_id=new_owner.id,
            description=(
                f"Renewed due to property transfer to {new_owner.name} on {day}. "
                f"Previous agreement: {agreement.agreement_number}"
            ),
            previous_agreement_id=agreement.id,
        )
        self.store.dispatch(AddRentalAgreement(new_agreement))

        used = int(number[len(settings.prefix):])
        self.store.dispatch(UpdateAgreementSettings(replace(settings, next_number=used + 1)))
        logger.debug("Renewed agreement %s as %s (%s)", agreement.id, new_agreement.id, number)
        return new_agreement.id


def security_deposit_notice(total: Decimal) -> str:
    """Manual follow-up for security deposits held under the old owner."""
    return (
        f"IMPORTANT: Security deposits ({total:,.2f}) must be transferred manually:\n"
        "  1. Pay security deposit refund to tenant from old owner\n"
        "  2. Collect security deposit from tenant for new owner (new security invoice)"
    )
