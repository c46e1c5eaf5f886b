"""Abstract state store interface."""

from abc import ABC, abstractmethod

from propledger.store.actions import Action
from propledger.store.state import AppState


class StateStore(ABC):
    """Holds the current application state and applies actions to it."""

    @property
    @abstractmethod
    def state(self) -> AppState:
        """Current state snapshot."""
        pass

    @abstractmethod
    def dispatch(self, action: Action) -> AppState:
        """Apply an action and return the new snapshot.

        Raises:
            TypeError: If the action is not one of the known actions
            NotFoundError: If the action updates an entity that does not exist
        """
        pass
