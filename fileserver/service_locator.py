"""Service locator for the process-wide store."""

from typing import Optional

from chunkstore.exceptions import StoreNotReadyError
from chunkstore.store import Store

_store: Optional[Store] = None


def set_store(store: Optional[Store]):
    """Set global store instance"""
    global _store
    _store = store


def get_store() -> Store:
    """
    Dependency returning the opened store.

    Raises:
        StoreNotReadyError: If the store has not been opened yet
    """
    if _store is None:
        raise StoreNotReadyError("Store is not ready")
    return _store
