"""Services package."""

from sales_ledger.services.identity import (
    AuthError,
    FirebaseIdentityProvider,
    Identity,
    IdentityProvider,
    LocalIdentityProvider,
)
from sales_ledger.services.preferences import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    PreferenceError,
)
from sales_ledger.services.storage import (
    CollectionPath,
    FirestoreCollectionStore,
    InMemoryCollectionStore,
    NotFoundError,
    RemoteCollectionStore,
    RemoteWriteError,
    StorageError,
    Subscription,
    SubscriptionError,
)

__all__ = [
    # Identity
    "AuthError",
    "FirebaseIdentityProvider",
    "Identity",
    "IdentityProvider",
    "LocalIdentityProvider",
    # Preferences
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "PreferenceError",
    # Storage
    "CollectionPath",
    "FirestoreCollectionStore",
    "InMemoryCollectionStore",
    "NotFoundError",
    "RemoteCollectionStore",
    "RemoteWriteError",
    "StorageError",
    "Subscription",
    "SubscriptionError",
]
