"""
Tests for the sync session lifecycle.

UNAUTHENTICATED -> AUTHENTICATING -> SUBSCRIBED -> TORN_DOWN
"""

import pytest

from conftest import APP_ID, OWNER, FlakyIdentityProvider, expense_doc, sale_doc
from sales_ledger.ledger import SessionError, SessionState
from sales_ledger.ledger import messages
from sales_ledger.models.records import NotificationKind, RecordKind
from sales_ledger.orchestrator import Ledger
from sales_ledger.services.identity import Identity
from sales_ledger.services.storage import (
    CollectionPath,
    InMemoryCollectionStore,
    Subscription,
)


class RecordingStore(InMemoryCollectionStore):
    """Keeps every snapshot callback it was given, even after unsubscribe."""

    def __init__(self):
        super().__init__()
        self.callbacks = []

    def subscribe(self, path, on_snapshot, on_error):
        self.callbacks.append((path, on_snapshot, on_error))
        return super().subscribe(path, on_snapshot, on_error)


class AuthorizingStore(InMemoryCollectionStore):
    """Remembers every identity it was authorized with."""

    def __init__(self):
        super().__init__()
        self.authorized = []

    async def authorize(self, identity):
        self.authorized.append(identity)
        await super().authorize(identity)


class CountingSubscription(Subscription):
    def __init__(self, path):
        super().__init__(path)
        self.cancel_calls = 0

    def _cancel(self):
        self.cancel_calls += 1


class TestStart:
    """Tests for sign-in and subscribe."""

    @pytest.mark.asyncio
    async def test_start_subscribes_both_kinds(self, ledger, remote, settle, sales_path, expenses_path):
        assert ledger.state == SessionState.UNAUTHENTICATED

        assert await ledger.start() is True

        assert ledger.state == SessionState.SUBSCRIBED
        assert ledger.session.owner_id == OWNER
        assert remote.active_subscriptions(sales_path) == 1
        assert remote.active_subscriptions(expenses_path) == 1
        assert set(ledger.session.subscriptions) == {RecordKind.SALES, RecordKind.EXPENSES}

    @pytest.mark.asyncio
    async def test_initial_snapshot_is_delivered(self, ledger, remote, settle, sales_path, expenses_path):
        remote.push(sales_path, [sale_doc("a"), sale_doc("b", date="2024-04-01")])
        remote.push(expenses_path, [expense_doc("c")])

        await ledger.start()
        await settle()

        assert [r.id for r in ledger.sales_snapshot] == ["b", "a"]
        assert [r.id for r in ledger.expenses_snapshot] == ["c"]

    @pytest.mark.asyncio
    async def test_custom_token_sign_in(self, identity, remote, notifications, settle):
        ledger = Ledger(identity, remote, APP_ID, notifications=notifications, auth_token="owner-9")

        await ledger.start()

        assert ledger.session.owner_id == "owner-9"
        assert ledger.sales.path.owner_id == "owner-9"

    @pytest.mark.asyncio
    async def test_start_twice_is_an_error(self, ledger):
        await ledger.start()
        with pytest.raises(SessionError):
            await ledger.start()

    @pytest.mark.asyncio
    async def test_auth_failure(self, remote, notifications):
        """Test that a failed sign-in leaves no subscriptions and tells the user."""
        ledger = Ledger(FlakyIdentityProvider(failures=1), remote, APP_ID, notifications=notifications)

        assert await ledger.start() is False

        assert ledger.state == SessionState.UNAUTHENTICATED
        assert remote.active_subscriptions() == 0
        assert ledger.notification.kind == NotificationKind.ERROR
        assert ledger.notification.message == messages.AUTH_FAILED

    @pytest.mark.asyncio
    async def test_sign_in_after_failure_subscribes(self, remote, notifications, settle):
        """Test that a later sign-in recovers a session whose start() failed."""
        provider = FlakyIdentityProvider(failures=1)
        ledger = Ledger(provider, remote, APP_ID, notifications=notifications)
        await ledger.start()

        await provider.sign_in_anonymous()
        await settle()

        assert ledger.state == SessionState.SUBSCRIBED
        assert remote.active_subscriptions() == 2

    @pytest.mark.asyncio
    async def test_start_again_after_failure(self, remote, notifications):
        ledger = Ledger(FlakyIdentityProvider(failures=1), remote, APP_ID, notifications=notifications)
        await ledger.start()

        assert await ledger.start() is True
        assert ledger.state == SessionState.SUBSCRIBED


class TestTeardown:
    """Tests for close and identity loss."""

    @pytest.mark.asyncio
    async def test_sign_out_tears_down(self, ledger, identity, remote, settle, sales_path):
        remote.push(sales_path, [sale_doc("a")])
        await ledger.start()
        await settle()

        await identity.sign_out()

        assert ledger.state == SessionState.TORN_DOWN
        assert remote.active_subscriptions() == 0
        assert ledger.sales_snapshot == ()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, ledger, remote):
        await ledger.start()
        subscriptions = list(ledger.session.subscriptions.values())

        ledger.session.close()
        ledger.session.close()

        assert ledger.state == SessionState.TORN_DOWN
        assert all(s.cancelled for s in subscriptions)
        assert remote.active_subscriptions() == 0

    def test_unsubscribe_releases_backend_once(self):
        path = CollectionPath(app_id=APP_ID, owner_id=OWNER, kind=RecordKind.SALES)
        subscription = CountingSubscription(path)

        subscription.unsubscribe()
        subscription.unsubscribe()

        assert subscription.cancelled
        assert subscription.cancel_calls == 1

    @pytest.mark.asyncio
    async def test_no_deliveries_after_close(self, ledger, remote, settle, sales_path):
        await ledger.start()
        await settle()
        ledger.session.close()

        remote.push(sales_path, [sale_doc("a")])
        await settle()

        assert ledger.sales_snapshot == ()

    @pytest.mark.asyncio
    async def test_queued_delivery_dropped_on_close(self, ledger, remote, settle, sales_path):
        """Test a delivery already scheduled when the session closes."""
        remote.push(sales_path, [sale_doc("a")])
        await ledger.start()

        ledger.session.close()
        await settle()

        assert ledger.sales_snapshot == ()

    @pytest.mark.asyncio
    async def test_restart_after_close(self, ledger, remote, settle, sales_path):
        remote.push(sales_path, [sale_doc("a")])
        await ledger.start()
        ledger.session.close()

        assert await ledger.start() is True
        await settle()

        assert [r.id for r in ledger.sales_snapshot] == ["a"]


class TestIdentityChange:
    """Tests for switching owners while subscribed."""

    @pytest.mark.asyncio
    async def test_switch_owner_resubscribes(self, ledger, identity, remote, settle, sales_path):
        remote.push(sales_path, [sale_doc("a")])
        await ledger.start()
        await settle()

        await identity.sign_in_with_token("owner-2")
        await settle()

        owner_2_sales = CollectionPath(app_id=APP_ID, owner_id="owner-2", kind=RecordKind.SALES)
        assert ledger.state == SessionState.SUBSCRIBED
        assert ledger.session.owner_id == "owner-2"
        assert remote.active_subscriptions(sales_path) == 0
        assert remote.active_subscriptions(owner_2_sales) == 1
        assert ledger.sales_snapshot == ()

    @pytest.mark.asyncio
    async def test_same_identity_is_ignored(self, ledger, identity, remote, settle):
        await ledger.start()
        before = ledger.session.subscriptions

        await identity.sign_in_anonymous()
        await settle()

        assert ledger.session.subscriptions == before
        assert remote.active_subscriptions() == 2

    @pytest.mark.asyncio
    async def test_stale_subscription_deliveries_are_dropped(self, identity, notifications, settle):
        """Test that a callback from a replaced subscription cannot install data."""
        remote = RecordingStore()
        ledger = Ledger(identity, remote, APP_ID, notifications=notifications)
        await ledger.start()
        await settle()
        _, old_on_snapshot, old_on_error = remote.callbacks[0]

        await identity.sign_in_with_token("owner-2")
        await settle()
        old_on_snapshot([sale_doc("leak")])
        old_on_error(RuntimeError("late"))

        assert ledger.sales_snapshot == ()
        assert ledger.notification is None

    @pytest.mark.asyncio
    async def test_renewed_token_reopens_subscriptions(self, identity, notifications, settle, sales_path):
        """Test that a refreshed ID token for the same owner re-authorizes and keeps the data."""
        remote = AuthorizingStore()
        remote.push(sales_path, [sale_doc("a")])
        ledger = Ledger(identity, remote, APP_ID, notifications=notifications)
        await ledger.start()
        await settle()
        before = ledger.session.subscriptions

        identity._set_identity(Identity(uid=OWNER, id_token="renewed-token", is_anonymous=True))
        await settle()

        assert [i.id_token for i in remote.authorized] == [None, "renewed-token"]
        assert before[RecordKind.SALES].cancelled
        assert ledger.session.subscriptions[RecordKind.SALES] is not before[RecordKind.SALES]
        assert remote.active_subscriptions() == 2
        assert ledger.state == SessionState.SUBSCRIBED
        assert [r.id for r in ledger.sales_snapshot] == ["a"]

    @pytest.mark.asyncio
    async def test_unchanged_token_is_ignored(self, identity, notifications, settle):
        remote = AuthorizingStore()
        ledger = Ledger(identity, remote, APP_ID, notifications=notifications)
        await ledger.start()
        await settle()

        identity._set_identity(Identity(uid=OWNER, is_anonymous=True))
        await settle()

        assert len(remote.authorized) == 1


class TestSubscriptionErrors:
    """Tests for stream failures."""

    @pytest.mark.asyncio
    async def test_error_keeps_last_snapshot(self, ledger, remote, settle, sales_path):
        remote.push(sales_path, [sale_doc("a")])
        await ledger.start()
        await settle()

        remote.emit_error(sales_path, "permission-denied")
        await settle()

        assert ledger.state == SessionState.SUBSCRIBED
        assert [r.id for r in ledger.sales_snapshot] == ["a"]
        assert ledger.notification.kind == NotificationKind.ERROR
        assert ledger.notification.message == messages.LOAD_FAILED[RecordKind.SALES]

    @pytest.mark.asyncio
    async def test_later_delivery_after_error(self, ledger, remote, settle, sales_path):
        await ledger.start()
        remote.emit_error(sales_path)
        await settle()

        remote.push(sales_path, [sale_doc("b")])
        await settle()

        assert [r.id for r in ledger.sales_snapshot] == ["b"]

    @pytest.mark.asyncio
    async def test_permission_denied_on_foreign_path(self, identity, remote, notifications, settle):
        """Test that subscribing outside the owner's scope reports an error."""
        ledger = Ledger(identity, remote, APP_ID, notifications=notifications)
        await ledger.start()
        await settle()

        foreign = CollectionPath(app_id=APP_ID, owner_id="someone-else", kind=RecordKind.EXPENSES)
        errors = []
        remote.subscribe(foreign, on_snapshot=lambda docs: None, on_error=errors.append)
        await settle()

        assert len(errors) == 1
        assert "Permission denied" in str(errors[0])
