"""State store backed by a JSON snapshot file."""

import json
import logging
from pathlib import Path
from typing import Optional

from propledger.store.actions import Action
from propledger.store.mappers import state_from_dict, state_to_dict
from propledger.store.memory import InMemoryStore
from propledger.store.state import AppState

logger = logging.getLogger(__name__)


class JsonFileStore(InMemoryStore):
    """In-memory store loaded from, and written back to, a JSON snapshot."""

    def __init__(self, path: str | Path):
        """Initialize JSON file store.

        Args:
            path: Snapshot file path. A missing file means an empty state.
        """
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> Optional[AppState]:
        if not self.path.exists():
            logger.info("No state snapshot at %s, starting empty", self.path)
            return None
        with self.path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        state = state_from_dict(data)
        logger.debug(
            "Loaded %d transactions and %d agreements from %s",
            len(state.transactions),
            len(state.rental_agreements),
            self.path,
        )
        return state

    def dispatch(self, action: Action) -> AppState:
        """Apply an action and write the new snapshot to disk."""
        state = super().dispatch(action)
        self.save()
        return state

    def save(self) -> None:
        """Write the current snapshot to the file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as fh:
            json.dump(state_to_dict(self.state), fh, indent=2)
