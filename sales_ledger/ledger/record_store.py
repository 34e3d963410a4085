"""
Record Store

One RecordStore per collection kind (sales, expenses). It is the local,
read-only mirror of the owner's remote collection plus the write path
to it.

CRITICAL: add() and remove() never touch the snapshot. The only writer of
the snapshot is apply_snapshot(), which the sync session calls when the
remote store pushes a new full collection. The UI therefore never shows
a value the store has not confirmed.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Generic, Optional, TypeVar, Union
from uuid import UUID

import pydantic

from sales_ledger.events import EventLogger
from sales_ledger.models.events import LedgerEventBuilder
from sales_ledger.models.records import (
    RECORD_MODELS,
    ExpenseDraft,
    LedgerRecord,
    RecordKind,
    SaleDraft,
)
from sales_ledger.services.storage import (
    CollectionPath,
    Document,
    RemoteCollectionStore,
    RemoteWriteError,
    StorageError,
)
from sales_ledger.validation import DraftValidator, ValidationError


R = TypeVar("R", bound=LedgerRecord)
Listener = Callable[[], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_records(records: list[R]) -> list[R]:
    """
    Order records for display: newest date first.

    Records sharing a date are ordered by creation time, newest first, and
    then by id so the order is the same on every delivery.
    """
    by_id = sorted(records, key=lambda r: r.id)
    return sorted(
        by_id,
        key=lambda r: (
            r.record_date,
            r.created_at is not None,
            r.created_at.timestamp() if r.created_at else 0.0,
        ),
        reverse=True,
    )


class RecordStore(Generic[R]):
    """
    Local snapshot and write path for one collection kind.

    The store is bound to an owner by the sync session; while unbound,
    the snapshot is empty and writes are refused.
    """

    def __init__(
        self,
        kind: RecordKind,
        remote: RemoteCollectionStore,
        app_id: str,
        validator: Optional[DraftValidator] = None,
        event_logger: Optional[EventLogger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.kind = kind
        self._model = RECORD_MODELS[kind]
        self._remote = remote
        self._app_id = app_id
        self._validator = validator or DraftValidator()
        self._events = event_logger or EventLogger()
        self._clock = clock

        self._owner_id: Optional[str] = None
        self._snapshot: tuple[R, ...] = ()
        self._listeners: list[Listener] = []

    # -------------------------------------------------------------------------
    # Owner scoping
    # -------------------------------------------------------------------------

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def path(self) -> CollectionPath:
        """The bound owner's collection. Raises RemoteWriteError when unbound."""
        if self._owner_id is None:
            raise RemoteWriteError(f"No signed-in owner for {self.kind.value}")
        return CollectionPath(app_id=self._app_id, owner_id=self._owner_id, kind=self.kind)

    def bind_owner(self, owner_id: str) -> None:
        """Scope the store to `owner_id`. Switching owner clears the snapshot."""
        if owner_id == self._owner_id:
            return
        self._owner_id = owner_id
        self._install(())

    def unbind_owner(self) -> None:
        self._owner_id = None
        self._install(())

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def current_snapshot(self) -> tuple[R, ...]:
        """The last delivered collection, newest first."""
        return self._snapshot

    def apply_snapshot(self, documents: list[Document]) -> None:
        """
        Replace the snapshot with a full delivery from the remote store.

        Documents that do not parse as records are skipped and logged;
        the rest are sorted and installed as a whole.
        """
        records = []
        skipped = 0
        for document in documents:
            try:
                records.append(self._model.model_validate(document))
            except pydantic.ValidationError as e:
                skipped += 1
                self._events.log(LedgerEventBuilder.malformed_document_skipped(
                    kind=self.kind.value,
                    record_id=str(document.get("id")) if document.get("id") else None,
                    error_message=str(e),
                ))

        self._install(tuple(sort_records(records)))
        self._events.log(LedgerEventBuilder.snapshot_applied(
            owner_id=self._owner_id,
            kind=self.kind.value,
            count=len(records),
            skipped=skipped,
        ))

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every snapshot change. Returns an unregister callable."""
        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def _install(self, records: tuple[R, ...]) -> None:
        self._snapshot = records
        for listener in list(self._listeners):
            listener()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add(
        self,
        draft: Union[SaleDraft, ExpenseDraft],
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Validate a draft and write it to the owner's collection.

        Resolves once the store acknowledges the write. The new record
        shows up in the snapshot only when the store pushes it back.

        Returns:
            The id the store assigned

        Raises:
            ValidationError: A required field is missing or invalid; nothing was written
            RemoteWriteError: No owner is bound, or the store rejected the write
        """
        try:
            payload: dict[str, Any] = self._validator.to_payload(
                self.kind, draft, created_at=self._clock()
            )
        except ValidationError as e:
            self._events.log_validation_failed(
                kind=self.kind.value,
                issues=[issue.model_dump() for issue in e.issues],
                correlation_id=correlation_id,
            )
            raise

        try:
            path = self.path
            record_id = await self._remote.create(path, payload)
        except StorageError as e:
            self._events.log_write_failed(
                kind=self.kind.value,
                operation="create",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            if isinstance(e, RemoteWriteError):
                raise
            raise RemoteWriteError(str(e)) from e

        self._events.log_record_created(
            kind=self.kind.value,
            record_id=record_id,
            owner_id=path.owner_id,
            correlation_id=correlation_id,
        )
        return record_id

    async def remove(
        self,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a record from the owner's collection.

        Raises:
            RemoteWriteError: No owner is bound, the id does not exist
                (NotFoundError), or the store rejected the delete
        """
        try:
            path = self.path
            await self._remote.delete_by_id(path, record_id)
        except StorageError as e:
            self._events.log_write_failed(
                kind=self.kind.value,
                operation="delete",
                error_message=str(e),
                record_id=record_id,
                correlation_id=correlation_id,
            )
            if isinstance(e, RemoteWriteError):
                raise
            raise RemoteWriteError(str(e)) from e

        self._events.log_record_deleted(
            kind=self.kind.value,
            record_id=record_id,
            owner_id=path.owner_id,
            correlation_id=correlation_id,
        )
