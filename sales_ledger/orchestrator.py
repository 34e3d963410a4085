"""
Main Orchestrator for Sales Ledger

This module ties the components together into the surface the UI uses:
snapshots, totals, the exchange rate, add/delete operations and the
current notification.

DESIGN DECISION: The orchestrator is where errors stop.
- Record stores raise (ValidationError, RemoteWriteError)
- The sync session turns sign-in and subscription failures into
  notifications itself
- Ledger catches write failures here, shows one notification, logs, and
  carries on
Nothing is retried and nothing is rolled back: local state only ever
changes when the remote store pushes a snapshot.
"""

from decimal import Decimal
from typing import Any, Callable, Optional, Union

import pydantic

from sales_ledger.config import get_settings
from sales_ledger.events import EventLogger, configure_logging, create_correlation_id
from sales_ledger.ledger import (
    Aggregator,
    ExchangeRate,
    NotificationChannel,
    RecordStore,
    SessionState,
    SyncSession,
)
from sales_ledger.ledger import messages
from sales_ledger.models.records import (
    ExpenseDraft,
    ExpenseRecord,
    Notification,
    RecordKind,
    SaleDraft,
    SaleRecord,
    Totals,
)
from sales_ledger.services.identity import (
    FirebaseIdentityProvider,
    IdentityProvider,
    LocalIdentityProvider,
)
from sales_ledger.services.preferences import JsonFileKeyValueStore
from sales_ledger.services.storage import (
    FirestoreCollectionStore,
    InMemoryCollectionStore,
    RemoteCollectionStore,
    RemoteWriteError,
)
from sales_ledger.validation import DraftValidator, ValidationError


DraftInput = Union[SaleDraft, ExpenseDraft, dict[str, Any]]

_DRAFT_MODELS = {
    RecordKind.SALES: SaleDraft,
    RecordKind.EXPENSES: ExpenseDraft,
}


class Ledger:
    """
    Everything the UI reads and every operation it can trigger.

    Lifecycle:
    1. start() → sign in and subscribe
    2. Snapshots and totals update as the remote store pushes changes
    3. add_*/delete_* write through; their effect shows up on the next push
    4. close() → tear down subscriptions and timers
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        remote: RemoteCollectionStore,
        app_id: str,
        exchange_rate: Optional[ExchangeRate] = None,
        notifications: Optional[NotificationChannel] = None,
        event_logger: Optional[EventLogger] = None,
        validator: Optional[DraftValidator] = None,
        auth_token: Optional[str] = None,
    ):
        self._identity_provider = identity_provider
        self._events = event_logger or EventLogger()
        self._rate = exchange_rate or ExchangeRate(event_logger=self._events)
        self._notifications = notifications or NotificationChannel()
        self._auth_token = auth_token

        validator = validator or DraftValidator()
        self.sales: RecordStore[SaleRecord] = RecordStore(
            RecordKind.SALES, remote, app_id, validator, self._events
        )
        self.expenses: RecordStore[ExpenseRecord] = RecordStore(
            RecordKind.EXPENSES, remote, app_id, validator, self._events
        )
        self.aggregator = Aggregator(self.sales, self.expenses, self._rate)
        self.session = SyncSession(
            identity_provider=identity_provider,
            remote=remote,
            stores=[self.sales, self.expenses],
            notifications=self._notifications,
            event_logger=self._events,
        )
        self._stores = {RecordKind.SALES: self.sales, RecordKind.EXPENSES: self.expenses}

    # -------------------------------------------------------------------------
    # State read by the UI
    # -------------------------------------------------------------------------

    @property
    def sales_snapshot(self) -> tuple[SaleRecord, ...]:
        return self.sales.current_snapshot()

    @property
    def expenses_snapshot(self) -> tuple[ExpenseRecord, ...]:
        return self.expenses.current_snapshot()

    @property
    def totals(self) -> Totals:
        return self.aggregator.totals

    @property
    def exchange_rate(self) -> Decimal:
        return self._rate.value

    @exchange_rate.setter
    def exchange_rate(self, value: Any) -> None:
        self._rate.set(value)

    @property
    def notification(self) -> Optional[Notification]:
        return self._notifications.current

    @property
    def state(self) -> SessionState:
        return self.session.state

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """
        Call `listener` whenever anything the UI shows may have changed
        (snapshots, totals, rate or notification).

        Returns:
            A callable that unregisters the listener
        """
        unregister_totals = self.aggregator.add_listener(lambda _totals: listener())
        unregister_notes = self._notifications.add_listener(lambda _note: listener())

        def unregister() -> None:
            unregister_totals()
            unregister_notes()

        return unregister

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> bool:
        """Sign in and subscribe. Returns True once subscribed."""
        return await self.session.start(self._auth_token)

    async def close(self) -> None:
        """Tear down the session and cancel notification timers."""
        self.session.close()
        self._notifications.close()
        aclose = getattr(self._identity_provider, "aclose", None)
        if aclose is not None:
            await aclose()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def add_sale(self, draft: DraftInput) -> Optional[str]:
        """Write a sale. Returns the new id, or None if it was not written."""
        return await self._add(RecordKind.SALES, draft)

    async def add_expense(self, draft: DraftInput) -> Optional[str]:
        """Write an expense. Returns the new id, or None if it was not written."""
        return await self._add(RecordKind.EXPENSES, draft)

    async def delete_sale(self, record_id: str) -> bool:
        """Delete a sale. Returns True if the store acknowledged the delete."""
        return await self._delete(RecordKind.SALES, record_id)

    async def delete_expense(self, record_id: str) -> bool:
        """Delete an expense. Returns True if the store acknowledged the delete."""
        return await self._delete(RecordKind.EXPENSES, record_id)

    async def _add(self, kind: RecordKind, draft: DraftInput) -> Optional[str]:
        correlation_id = create_correlation_id()

        if isinstance(draft, dict):
            try:
                draft = _DRAFT_MODELS[kind].model_validate(draft)
            except pydantic.ValidationError as e:
                self._events.log_validation_failed(
                    kind=kind.value,
                    issues=[{"field": ".".join(map(str, err["loc"])), "message": err["msg"]} for err in e.errors()],
                    correlation_id=correlation_id,
                )
                self._notifications.error(messages.MISSING_FIELDS[kind])
                return None

        try:
            record_id = await self._stores[kind].add(draft, correlation_id)
        except ValidationError:
            self._notifications.error(messages.MISSING_FIELDS[kind])
            return None
        except RemoteWriteError:
            self._notifications.error(messages.ADD_FAILED[kind])
            return None

        self._notifications.success(messages.ADDED[kind])
        return record_id

    async def _delete(self, kind: RecordKind, record_id: str) -> bool:
        correlation_id = create_correlation_id()
        try:
            await self._stores[kind].remove(record_id, correlation_id)
        except RemoteWriteError:
            self._notifications.error(messages.DELETE_FAILED[kind])
            return False

        self._notifications.success(messages.DELETED[kind])
        return True


def create_app_components(use_firestore: bool = True) -> Ledger:
    """
    Factory function to build a Ledger from settings.

    Args:
        use_firestore: Use Firebase Auth + Firestore. Set to False to run
                       against the in-memory store with a local identity.
                       If Firebase is not configured, the in-memory store
                       is used as well.

    Returns:
        A Ledger ready for start()
    """
    settings = get_settings()
    ledger_settings = settings.ledger
    configure_logging(ledger_settings.log_level)
    event_logger = EventLogger()

    exchange_rate = ExchangeRate(
        initial=ledger_settings.default_exchange_rate,
        preferences=JsonFileKeyValueStore(ledger_settings.preferences_path),
        key=ledger_settings.exchange_rate_key,
        event_logger=event_logger,
    )
    notifications = NotificationChannel(ttl_seconds=ledger_settings.notification_ttl_seconds)

    if use_firestore:
        try:
            firebase = settings.firebase
        except pydantic.ValidationError as e:
            # Firebase not configured - continue without it
            event_logger.log_error("firebase_not_configured", str(e))
        else:
            return Ledger(
                identity_provider=FirebaseIdentityProvider(
                    api_key=firebase.api_key,
                    timeout=firebase.request_timeout_seconds,
                    refresh_margin=firebase.token_refresh_margin_seconds,
                    event_logger=event_logger,
                ),
                remote=FirestoreCollectionStore(
                    project_id=firebase.project_id,
                    health_interval=ledger_settings.listener_health_interval_seconds,
                    timeout=firebase.request_timeout_seconds,
                ),
                app_id=firebase.app_id,
                exchange_rate=exchange_rate,
                notifications=notifications,
                event_logger=event_logger,
                auth_token=firebase.initial_auth_token,
            )

    return Ledger(
        identity_provider=LocalIdentityProvider(),
        remote=InMemoryCollectionStore(),
        app_id="local",
        exchange_rate=exchange_rate,
        notifications=notifications,
        event_logger=event_logger,
    )
