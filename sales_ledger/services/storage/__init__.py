"""
Storage Services Package

Provides the abstract remote collection store and its implementations.
Firestore is the production backend; the in-memory store serves local
runs and tests.
"""

from sales_ledger.services.storage.interface import (
    CollectionPath,
    Document,
    NotFoundError,
    RemoteCollectionStore,
    RemoteWriteError,
    StorageError,
    Subscription,
    SubscriptionError,
)
from sales_ledger.services.storage.memory import InMemoryCollectionStore
from sales_ledger.services.storage.firestore import FirestoreCollectionStore

__all__ = [
    # Interface
    "CollectionPath",
    "Document",
    "RemoteCollectionStore",
    "Subscription",
    # Exceptions
    "NotFoundError",
    "RemoteWriteError",
    "StorageError",
    "SubscriptionError",
    # Implementations
    "FirestoreCollectionStore",
    "InMemoryCollectionStore",
]
