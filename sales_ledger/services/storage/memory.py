"""
In-Memory Remote Collection Store

Behaves like a push-based document store without a network:
- writes are acknowledged asynchronously
- every mutation schedules a full snapshot delivery on the event loop,
  so deliveries never run inside the write that caused them
- once an identity is authorized, paths owned by anyone else are refused,
  mirroring per-user security rules

Used for local runs and as the test double for the sync engine. Tests can
also push arbitrary snapshots, inject write failures and emit stream errors.
"""

import asyncio
from typing import Optional
from uuid import uuid4

from sales_ledger.services.identity.interface import Identity
from sales_ledger.services.storage.interface import (
    CollectionPath,
    Document,
    ErrorCallback,
    NotFoundError,
    RemoteCollectionStore,
    RemoteWriteError,
    SnapshotCallback,
    Subscription,
    SubscriptionError,
)


class InMemorySubscription(Subscription):
    """A listener registered on an InMemoryCollectionStore."""

    def __init__(
        self,
        store: "InMemoryCollectionStore",
        path: CollectionPath,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__(path)
        self._store = store
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._loop = loop

    def schedule_snapshot(self, documents: list[Document]) -> None:
        self._loop.call_soon(self._deliver, documents)

    def schedule_error(self, error: SubscriptionError) -> None:
        self._loop.call_soon(self._fail, error)

    def _deliver(self, documents: list[Document]) -> None:
        # Deliveries already queued when unsubscribe() ran are dropped
        if not self.cancelled:
            self._on_snapshot(documents)

    def _fail(self, error: SubscriptionError) -> None:
        if not self.cancelled:
            self._on_error(error)

    def _cancel(self) -> None:
        self._store._remove_subscription(self)


class InMemoryCollectionStore(RemoteCollectionStore):
    """
    Dictionary-backed implementation of RemoteCollectionStore.

    Collections keep insertion order; the store does not sort.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}
        self._subscriptions: dict[str, list[InMemorySubscription]] = {}
        self._identity: Optional[Identity] = None
        self._pending_failure: Optional[Exception] = None
        self.write_calls = 0

    # -------------------------------------------------------------------------
    # RemoteCollectionStore
    # -------------------------------------------------------------------------

    async def authorize(self, identity: Identity) -> None:
        self._identity = identity

    def subscribe(
        self,
        path: CollectionPath,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> InMemorySubscription:
        loop = asyncio.get_running_loop()
        subscription = InMemorySubscription(self, path, on_snapshot, on_error, loop)
        self._subscriptions.setdefault(str(path), []).append(subscription)

        if self._is_allowed(path):
            subscription.schedule_snapshot(self.documents(path))
        else:
            subscription.schedule_error(
                SubscriptionError(f"Permission denied for {path}", path=path)
            )
        return subscription

    async def create(self, path: CollectionPath, data: Document) -> str:
        self.write_calls += 1
        await asyncio.sleep(0)
        self._raise_if_refused(path)

        record_id = uuid4().hex[:20]
        self._collections.setdefault(str(path), {})[record_id] = dict(data)
        self._broadcast(path)
        return record_id

    async def delete_by_id(self, path: CollectionPath, record_id: str) -> None:
        self.write_calls += 1
        await asyncio.sleep(0)
        self._raise_if_refused(path)

        collection = self._collections.get(str(path), {})
        if record_id not in collection:
            raise NotFoundError(f"No document {record_id} in {path}")
        del collection[record_id]
        self._broadcast(path)

    # -------------------------------------------------------------------------
    # Inspection and simulation
    # -------------------------------------------------------------------------

    def documents(self, path: CollectionPath) -> list[Document]:
        """Current documents of a collection, each with its id merged in."""
        collection = self._collections.get(str(path), {})
        return [{"id": record_id, **data} for record_id, data in collection.items()]

    def push(self, path: CollectionPath, documents: list[Document]) -> None:
        """
        Replace a collection's contents and notify listeners.

        Each document must carry an "id". Order is kept as given.
        """
        self._collections[str(path)] = {
            doc["id"]: {k: v for k, v in doc.items() if k != "id"}
            for doc in documents
        }
        self._broadcast(path)

    def emit_error(self, path: CollectionPath, message: str = "Stream failed") -> None:
        """Report a stream error to every listener on `path`."""
        for subscription in list(self._subscriptions.get(str(path), [])):
            subscription.schedule_error(SubscriptionError(message, path=path))

    def fail_next_write(self, error: Optional[Exception] = None) -> None:
        """Make the next create/delete raise `error` (RemoteWriteError by default)."""
        self._pending_failure = error or RemoteWriteError("Write rejected")

    def active_subscriptions(self, path: Optional[CollectionPath] = None) -> int:
        if path is not None:
            return len(self._subscriptions.get(str(path), []))
        return sum(len(subs) for subs in self._subscriptions.values())

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _is_allowed(self, path: CollectionPath) -> bool:
        return self._identity is None or self._identity.uid == path.owner_id

    def _raise_if_refused(self, path: CollectionPath) -> None:
        if self._pending_failure is not None:
            error, self._pending_failure = self._pending_failure, None
            raise error
        if not self._is_allowed(path):
            raise RemoteWriteError(f"Permission denied for {path}")

    def _broadcast(self, path: CollectionPath) -> None:
        documents = self.documents(path)
        for subscription in self._subscriptions.get(str(path), []):
            subscription.schedule_snapshot(list(documents))

    def _remove_subscription(self, subscription: InMemorySubscription) -> None:
        subscriptions = self._subscriptions.get(str(subscription.path), [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
