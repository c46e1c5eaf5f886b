"""State store layer for propledger."""

from propledger.store.state import AppState
from propledger.store.base import StateStore
from propledger.store.memory import InMemoryStore
from propledger.store.json_store import JsonFileStore
from propledger.store.factories import create_json_store

__all__ = ["AppState", "StateStore", "InMemoryStore", "JsonFileStore", "create_json_store"]
