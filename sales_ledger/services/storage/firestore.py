"""
Firestore Remote Collection Store

DESIGN DECISION: Firestore is the production backend because:
1. Collection listeners push the full result set on every change
2. Per-user security rules scope each owner's collections
3. No server of our own to run

TRADEOFFS:
- The listener API only exists on the synchronous client, so every SDK
  call (client construction included) runs in a worker thread and the
  event loop never waits on the network or on connect() backoff
- Listener callbacks arrive on SDK worker threads; they are marshalled
  onto the event loop with call_soon_threadsafe before touching any state
- The Python SDK exposes no error callback for listeners, so listener
  liveness is polled and a stopped listener is reported as a
  SubscriptionError

Writes are sent with the SDK's automatic retry disabled. A failed write
surfaces to the caller once and is not resent.
"""

import asyncio
import threading
from typing import Optional

import google.auth.exceptions
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.oauth2.credentials import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from sales_ledger.config import get_settings
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


# Errors raised by the SDK (or the sockets under it) for rejected or
# undeliverable calls
TRANSPORT_ERRORS = (
    gcp_exceptions.GoogleAPICallError,
    gcp_exceptions.RetryError,
    google.auth.exceptions.GoogleAuthError,
    OSError,
)


class FirestoreSubscription(Subscription):
    """
    Wraps a Firestore Watch.

    The Watch is opened in a worker thread and attached once it exists.
    Snapshots are converted to plain documents on the SDK thread and
    handed to the event loop; nothing else happens off-loop.
    """

    def __init__(
        self,
        path: CollectionPath,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__(path)
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._loop = loop
        self._watch = None
        self._opening: Optional[asyncio.Task] = None
        self._monitor: Optional[asyncio.Task] = None
        self._failed = False

    def attach(self, watch, health_interval: float) -> None:
        """Adopt an opened Watch. Runs on the loop."""
        if self.cancelled:
            # Unsubscribed while the listener was being opened
            watch.unsubscribe()
            return
        self._watch = watch
        self._monitor = self._loop.create_task(self._watch_health(health_interval))

    def handle_watch_event(self, doc_snapshots, changes, read_time) -> None:
        """Firestore listener callback. Runs on an SDK thread."""
        if self.cancelled or self._loop.is_closed():
            return
        try:
            documents = [
                {"id": snap.id, **(snap.to_dict() or {})}
                for snap in doc_snapshots
            ]
        except Exception as e:
            self._loop.call_soon_threadsafe(
                self._fail,
                SubscriptionError(f"Could not read snapshot of {self.path}: {e}", path=self.path),
            )
            return
        self._loop.call_soon_threadsafe(self._deliver, documents)

    async def _watch_health(self, interval: float) -> None:
        while not self.cancelled:
            await asyncio.sleep(interval)
            if self.cancelled:
                return
            if self._watch is not None and not self._watch.is_active:
                self._fail(SubscriptionError(f"Listener on {self.path} stopped", path=self.path))
                return

    def _deliver(self, documents: list[Document]) -> None:
        if not self.cancelled:
            self._on_snapshot(documents)

    def _fail(self, error: SubscriptionError) -> None:
        # A dead listener is reported once
        if self.cancelled or self._failed:
            return
        self._failed = True
        self._on_error(error)

    def _cancel(self) -> None:
        # A listener still being opened is released by attach()
        if self._monitor is not None:
            self._monitor.cancel()
        if self._watch is not None:
            self._watch.unsubscribe()


class FirestoreCollectionStore(RemoteCollectionStore):
    """
    Firestore implementation of RemoteCollectionStore.

    Without authorize(), Application Default Credentials are used (the
    FIRESTORE_EMULATOR_HOST variable is honoured by the SDK). After
    authorize(), calls carry the user's Firebase ID token so security
    rules see the signed-in owner.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        health_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self._project_id = project_id or settings.firebase.project_id
        self._credentials = credentials
        self._health_interval = (
            health_interval or settings.ledger.listener_health_interval_seconds
        )
        self._timeout = timeout or settings.firebase.request_timeout_seconds
        self._client: Optional[firestore.Client] = None
        self._client_lock = threading.Lock()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> firestore.Client:
        """
        Create the Firestore client on first use.

        Blocking, including the backoff between attempts: call it from a
        worker thread, never from the event loop.

        Raises:
            RemoteWriteError: If the client cannot be built after 3 attempts
        """
        with self._client_lock:
            if self._client is None:
                try:
                    self._client = firestore.Client(
                        project=self._project_id,
                        credentials=self._credentials,
                    )
                except Exception as e:
                    raise RemoteWriteError(f"Could not create Firestore client: {e}") from e
            return self._client

    async def authorize(self, identity: Identity) -> None:
        if not identity.id_token:
            return
        await asyncio.to_thread(self._reset_client, Credentials(token=identity.id_token))

    def _reset_client(self, credentials: Credentials) -> None:
        # Rebuild the client so new calls and listeners use the new token
        with self._client_lock:
            self._credentials = credentials
            self._client = None

    def subscribe(
        self,
        path: CollectionPath,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> FirestoreSubscription:
        loop = asyncio.get_running_loop()
        subscription = FirestoreSubscription(path, on_snapshot, on_error, loop)
        subscription._opening = loop.create_task(self._listen(subscription))
        return subscription

    async def _listen(self, subscription: FirestoreSubscription) -> None:
        path = subscription.path
        try:
            watch = await asyncio.to_thread(
                self._open_watch, path, subscription.handle_watch_event
            )
        except Exception as e:
            subscription._fail(SubscriptionError(f"Could not listen to {path}: {e}", path=path))
            return
        subscription.attach(watch, self._health_interval)

    def _open_watch(self, path: CollectionPath, callback):
        return self.connect().collection(*path.segments).on_snapshot(callback)

    def _add_document(self, path: CollectionPath, data: Document) -> str:
        collection = self.connect().collection(*path.segments)
        _, doc_ref = collection.add(data, retry=None, timeout=self._timeout)
        return doc_ref.id

    def _delete_document(self, path: CollectionPath, record_id: str) -> None:
        client = self.connect()
        client.collection(*path.segments).document(record_id).delete(
            option=client.write_option(exists=True),
            retry=None,
            timeout=self._timeout,
        )

    async def create(self, path: CollectionPath, data: Document) -> str:
        try:
            return await asyncio.to_thread(self._add_document, path, data)
        except TRANSPORT_ERRORS as e:
            raise RemoteWriteError(f"Failed to create document in {path}: {e}") from e

    async def delete_by_id(self, path: CollectionPath, record_id: str) -> None:
        try:
            await asyncio.to_thread(self._delete_document, path, record_id)
        except gcp_exceptions.NotFound as e:
            raise NotFoundError(f"No document {record_id} in {path}") from e
        except TRANSPORT_ERRORS as e:
            raise RemoteWriteError(f"Failed to delete {record_id} from {path}: {e}") from e
