"""
Sync Session

Owns the lifecycle of the two live subscriptions:

    UNAUTHENTICATED -> AUTHENTICATING -> SUBSCRIBED -> TORN_DOWN

- start() signs in (custom token if given, anonymous otherwise)
- once an identity is known, one subscription per kind is opened,
  scoped to that owner
- every delivery replaces the matching record store's snapshot
- a renewed ID token for the same owner re-authorizes the remote store
  and reopens both subscriptions; the snapshots are kept
- identity loss or close() tears everything down; start() again to
  re-enter

The session does not serialize writes and deliveries. Whatever snapshot
arrives last is the one shown.

Failures never escape: a sign-in failure or subscription error becomes an
error notification and a log event.
"""

import asyncio
import functools
from enum import Enum
from typing import Coroutine, Optional

from sales_ledger.events import EventLogger
from sales_ledger.ledger import messages
from sales_ledger.ledger.notifications import NotificationChannel
from sales_ledger.ledger.record_store import RecordStore
from sales_ledger.models.events import LedgerEventBuilder
from sales_ledger.models.records import RecordKind
from sales_ledger.services.identity import AuthError, Identity, IdentityProvider
from sales_ledger.services.storage import (
    Document,
    RemoteCollectionStore,
    StorageError,
    Subscription,
)


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    SUBSCRIBED = "subscribed"
    TORN_DOWN = "torn_down"


class SessionError(Exception):
    """The session was asked to do something its state does not allow."""
    pass


class SyncSession:
    """
    Connects an identity provider, a remote store and the two record stores.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        remote: RemoteCollectionStore,
        stores: list[RecordStore],
        notifications: NotificationChannel,
        event_logger: Optional[EventLogger] = None,
    ):
        self._identity_provider = identity_provider
        self._remote = remote
        self._stores = {store.kind: store for store in stores}
        self._notifications = notifications
        self._events = event_logger or EventLogger()

        self._state = SessionState.UNAUTHENTICATED
        self._owner_id: Optional[str] = None
        self._id_token: Optional[str] = None
        self._subscriptions: dict[RecordKind, Subscription] = {}
        # Bumped on every (re)subscribe and teardown; stale deliveries are dropped
        self._generation = 0
        self._unregister_identity = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def subscriptions(self) -> dict[RecordKind, Subscription]:
        return dict(self._subscriptions)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, auth_token: Optional[str] = None) -> bool:
        """
        Sign in and subscribe.

        Returns:
            True if the session ended up SUBSCRIBED

        Raises:
            SessionError: If the session is already authenticating or subscribed
        """
        if self._state not in (SessionState.UNAUTHENTICATED, SessionState.TORN_DOWN):
            raise SessionError(f"Cannot start a session that is {self._state.value}")

        if self._unregister_identity is None:
            self._unregister_identity = self._identity_provider.on_identity_change(
                self._on_identity_change
            )
        self._state = SessionState.AUTHENTICATING

        method = "custom_token" if auth_token else "anonymous"
        self._events.log(LedgerEventBuilder.sign_in_started(method))
        try:
            if auth_token:
                identity = await self._identity_provider.sign_in_with_token(auth_token)
            else:
                identity = await self._identity_provider.sign_in_anonymous()
        except AuthError as e:
            self._events.log(LedgerEventBuilder.sign_in_failed(method, str(e)))
            if self._state == SessionState.AUTHENTICATING:
                self._state = SessionState.UNAUTHENTICATED
            self._notifications.error(messages.AUTH_FAILED)
            return False

        # close() may have run while we were waiting
        if self._state != SessionState.AUTHENTICATING:
            return self._state == SessionState.SUBSCRIBED

        self._events.log(LedgerEventBuilder.sign_in_succeeded(identity.uid, method))
        await self._open(identity)
        return self._state == SessionState.SUBSCRIBED

    def close(self) -> None:
        """Tear down the session. Safe to call more than once."""
        if self._state == SessionState.TORN_DOWN:
            return
        self._teardown("closed")

    # -------------------------------------------------------------------------
    # Identity changes
    # -------------------------------------------------------------------------

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        # start() handles the result of its own sign-in
        if self._state in (SessionState.AUTHENTICATING, SessionState.TORN_DOWN):
            return

        if identity is None:
            if self._state == SessionState.SUBSCRIBED:
                self._events.log(LedgerEventBuilder.identity_lost(self._owner_id))
                self._teardown("identity_lost")
            return

        if self._state == SessionState.SUBSCRIBED and identity.uid == self._owner_id:
            if identity.id_token == self._id_token:
                return
            # Renewed token; listeners reopen with it
            self._schedule(self._open(identity))
            return

        # A different owner, or a sign-in that happened outside start()
        self._schedule(self._open(identity))

    def _schedule(self, coro: Coroutine) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def _open(self, identity: Identity) -> None:
        await self._remote.authorize(identity)
        if self._state == SessionState.TORN_DOWN:
            return

        self._cancel_subscriptions()
        self._generation += 1
        generation = self._generation
        self._owner_id = identity.uid
        self._id_token = identity.id_token

        for kind, store in self._stores.items():
            store.bind_owner(identity.uid)
            path = store.path
            try:
                subscription = self._remote.subscribe(
                    path,
                    on_snapshot=functools.partial(self._deliver, kind, generation),
                    on_error=functools.partial(self._on_subscription_error, kind, generation),
                )
            except StorageError as e:
                self._on_subscription_error(kind, generation, e)
                continue
            self._subscriptions[kind] = subscription
            self._events.log(LedgerEventBuilder.subscription_opened(
                owner_id=identity.uid,
                kind=kind.value,
                path=str(path),
            ))

        self._state = SessionState.SUBSCRIBED

    def _deliver(self, kind: RecordKind, generation: int, documents: list[Document]) -> None:
        if generation != self._generation:
            return
        self._stores[kind].apply_snapshot(documents)

    def _on_subscription_error(self, kind: RecordKind, generation: int, error: Exception) -> None:
        if generation != self._generation:
            return
        # The snapshot stays as last delivered; the session keeps running
        self._events.log(LedgerEventBuilder.subscription_failed(
            owner_id=self._owner_id,
            kind=kind.value,
            error_message=str(error),
        ))
        self._notifications.error(messages.LOAD_FAILED[kind])

    def _cancel_subscriptions(self) -> None:
        for kind, subscription in self._subscriptions.items():
            subscription.unsubscribe()
            self._events.log(LedgerEventBuilder.subscription_cancelled(self._owner_id, kind.value))
        self._subscriptions = {}

    def _teardown(self, reason: str) -> None:
        owner_id = self._owner_id
        self._generation += 1
        self._cancel_subscriptions()

        if self._unregister_identity is not None:
            self._unregister_identity()
            self._unregister_identity = None

        for task in list(self._tasks):
            task.cancel()

        for store in self._stores.values():
            store.unbind_owner()
        self._owner_id = None
        self._id_token = None
        self._state = SessionState.TORN_DOWN
        self._events.log(LedgerEventBuilder.session_torn_down(owner_id, reason))
