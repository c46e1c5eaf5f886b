"""Store factory functions."""

import os
from pathlib import Path
from typing import Optional

from propledger.store.json_store import JsonFileStore


def default_state_path() -> Path:
    """Return ~/.propledger/state.json."""
    return Path.home() / ".propledger" / "state.json"


def create_json_store(state_path: Optional[str] = None) -> JsonFileStore:
    """Create a store backed by a JSON snapshot file.

    Args:
        state_path: Path to the snapshot. If None, checks the
            PROPLEDGER_STATE_PATH environment variable, then defaults to
            ~/.propledger/state.json

    Returns:
        JsonFileStore instance
    """
    if state_path is None:
        state_path = os.environ.get("PROPLEDGER_STATE_PATH")

    if state_path is None:
        return JsonFileStore(default_state_path())

    return JsonFileStore(state_path)
