"""In-memory state store."""

import logging
from dataclasses import replace
from typing import Callable, Optional

from propledger.domain.errors import NotFoundError, entity_not_found
from propledger.store.actions import (
    Action,
    AddRentalAgreement,
    AddTransaction,
    DeleteTransaction,
    UpdateAgreementSettings,
    UpdateProject,
    UpdateProperty,
    UpdateRecurringTemplate,
    UpdateRentalAgreement,
    UpdateTransaction,
)
from propledger.store.base import StateStore
from propledger.store.state import AppState

logger = logging.getLogger(__name__)


def _replace_item(items: tuple, item, kind: str) -> tuple:
    """Swap the element with ``item.id`` for ``item``."""
    found = False
    updated = []
    for existing in items:
        if existing.id == item.id:
            updated.append(item)
            found = True
        else:
            updated.append(existing)
    if not found:
        raise NotFoundError(entity_not_found(kind, item.id))
    return tuple(updated)


def _reduce_update_property(state: AppState, action: UpdateProperty) -> AppState:
    return replace(
        state, properties=_replace_item(state.properties, action.property, "Property")
    )


def _reduce_update_agreement(state: AppState, action: UpdateRentalAgreement) -> AppState:
    return replace(
        state,
        rental_agreements=_replace_item(
            state.rental_agreements, action.agreement, "Rental agreement"
        ),
    )


def _reduce_add_agreement(state: AppState, action: AddRentalAgreement) -> AppState:
    return replace(state, rental_agreements=state.rental_agreements + (action.agreement,))


def _reduce_update_template(state: AppState, action: UpdateRecurringTemplate) -> AppState:
    return replace(
        state,
        recurring_templates=_replace_item(
            state.recurring_templates, action.template, "Recurring template"
        ),
    )


def _reduce_update_settings(state: AppState, action: UpdateAgreementSettings) -> AppState:
    return replace(state, agreement_settings=action.settings)


def _reduce_update_project(state: AppState, action: UpdateProject) -> AppState:
    return replace(state, projects=_replace_item(state.projects, action.project, "Project"))


def _reduce_add_transaction(state: AppState, action: AddTransaction) -> AppState:
    return replace(state, transactions=state.transactions + (action.transaction,))


def _reduce_update_transaction(state: AppState, action: UpdateTransaction) -> AppState:
    return replace(
        state,
        transactions=_replace_item(state.transactions, action.transaction, "Transaction"),
    )


def _reduce_delete_transaction(state: AppState, action: DeleteTransaction) -> AppState:
    remaining = tuple(t for t in state.transactions if t.id != action.transaction_id)
    if len(remaining) == len(state.transactions):
        raise NotFoundError(entity_not_found("Transaction", action.transaction_id))
    return replace(state, transactions=remaining)


REDUCERS: dict[type, Callable[[AppState, Action], AppState]] = {
    UpdateProperty: _reduce_update_property,
    UpdateRentalAgreement: _reduce_update_agreement,
    AddRentalAgreement: _reduce_add_agreement,
    UpdateRecurringTemplate: _reduce_update_template,
    UpdateAgreementSettings: _reduce_update_settings,
    UpdateProject: _reduce_update_project,
    AddTransaction: _reduce_add_transaction,
    UpdateTransaction: _reduce_update_transaction,
    DeleteTransaction: _reduce_delete_transaction,
}


class InMemoryStore(StateStore):
    """State store keeping the snapshot in memory."""

    def __init__(self, state: Optional[AppState] = None):
        """Initialize the store.

        Args:
            state: Initial snapshot (defaults to an empty state)
        """
        self._state = state if state is not None else AppState()
        self.dispatched: list[Action] = []

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Action) -> AppState:
        """Apply an action and return the new snapshot."""
        reducer = REDUCERS.get(type(action))
        if reducer is None:
            raise TypeError(f"Unknown action: {type(action).__name__}")

        self._state = reducer(self._state, action)
        self.dispatched.append(action)
        logger.info("Dispatched %s", type(action).__name__)
        return self._state
