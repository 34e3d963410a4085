"""
Abstract Remote Collection Store

DESIGN DECISION: The engine talks to the remote document store through
this small interface. This allows us to:
1. Swap Firestore for another document store
2. Use an in-memory store for tests and local runs
3. Keep the sync engine decoupled from any wire protocol

The interface is intentionally minimal - collections are only ever
subscribed to, appended to, and deleted from.

CONTRACT for subscribe():
- Every delivery is the FULL current collection, never a diff
- Deliveries for one subscription arrive in order
- Callbacks run on the event loop that called subscribe()
- unsubscribe() may be called any number of times; only the first counts
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sales_ledger.models.records import RecordKind
from sales_ledger.services.identity.interface import Identity


Document = dict[str, Any]
SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]


@dataclass(frozen=True)
class CollectionPath:
    """
    Location of one owner's collection of one kind.

    Rendered as artifacts/{app_id}/users/{owner_id}/{kind}.
    """
    app_id: str
    owner_id: str
    kind: RecordKind

    @property
    def segments(self) -> tuple[str, ...]:
        return ("artifacts", self.app_id, "users", self.owner_id, self.kind.value)

    def __str__(self) -> str:
        return "/".join(self.segments)


class Subscription(ABC):
    """
    Handle for one live subscription.

    unsubscribe() is idempotent: the backend is told to stop exactly once.
    """

    def __init__(self, path: CollectionPath):
        self.path = path
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def unsubscribe(self) -> None:
        """Stop deliveries. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        self._cancel()

    @abstractmethod
    def _cancel(self) -> None:
        """Release the backend listener. Called at most once."""
        pass


class RemoteCollectionStore(ABC):
    """
    Abstract interface for the remote document store.

    Any backend (Firestore, in-memory, etc.) must implement these methods.
    """

    async def authorize(self, identity: Identity) -> None:
        """
        Make subsequent calls act on behalf of `identity`.

        Backends that need no per-user credentials keep the default.
        """
        return None

    @abstractmethod
    def subscribe(
        self,
        path: CollectionPath,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """
        Start listening to a collection.

        Args:
            path: The collection to listen to
            on_snapshot: Receives every document in the collection, each a
                dict with its store-assigned "id" merged in
            on_error: Receives SubscriptionError when the stream fails

        Returns:
            A handle whose unsubscribe() stops deliveries
        """
        pass

    @abstractmethod
    async def create(self, path: CollectionPath, data: Document) -> str:
        """
        Add a document to a collection.

        Args:
            path: Target collection
            data: Document fields (no id)

        Returns:
            The id assigned by the store

        Raises:
            RemoteWriteError: If the write is rejected or fails in transport
        """
        pass

    @abstractmethod
    async def delete_by_id(self, path: CollectionPath, record_id: str) -> None:
        """
        Delete a document.

        Raises:
            NotFoundError: If no document has that id
            RemoteWriteError: If the delete is rejected or fails in transport
        """
        pass


class StorageError(Exception):
    """Base exception for remote store operations."""
    pass


class RemoteWriteError(StorageError):
    """A create or delete was rejected or could not be delivered."""
    pass


class NotFoundError(RemoteWriteError):
    """The document to delete does not exist."""
    pass


class SubscriptionError(StorageError):
    """A live subscription reported an error."""

    def __init__(self, message: str, path: Optional[CollectionPath] = None):
        self.path = path
        super().__init__(message)
