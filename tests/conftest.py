"""
Shared fixtures for Sales Ledger tests.

Everything runs against the in-memory store and the local identity
provider; no test talks to Firebase.
"""

import asyncio

import pytest

from sales_ledger.ledger import NotificationChannel
from sales_ledger.models.records import RecordKind
from sales_ledger.orchestrator import Ledger
from sales_ledger.services.identity import AuthError, Identity, LocalIdentityProvider
from sales_ledger.services.storage import CollectionPath, InMemoryCollectionStore


APP_ID = "test-app"
OWNER = "owner-1"


class FlakyIdentityProvider(LocalIdentityProvider):
    """Local provider whose first `failures` sign-ins raise AuthError."""

    def __init__(self, failures: int = 1, anonymous_uid: str = OWNER):
        super().__init__(anonymous_uid=anonymous_uid)
        self.failures = failures

    async def sign_in_anonymous(self) -> Identity:
        if self.failures > 0:
            self.failures -= 1
            raise AuthError("auth/network-request-failed")
        return await super().sign_in_anonymous()


def sale_doc(record_id, date="2024-03-01", amount=10.0, quantity=1, currency="USD", **extra):
    return {
        "id": record_id,
        "date": date,
        "product": extra.pop("product", "Café"),
        "quantity": quantity,
        "amount": amount,
        "currency": currency,
        **extra,
    }


def expense_doc(record_id, date="2024-03-01", amount=5.0, currency="USD", **extra):
    return {
        "id": record_id,
        "date": date,
        "category": extra.pop("category", "Alquiler"),
        "amount": amount,
        "currency": currency,
        **extra,
    }


@pytest.fixture
def remote():
    return InMemoryCollectionStore()


@pytest.fixture
def identity():
    return LocalIdentityProvider(anonymous_uid=OWNER)


@pytest.fixture
def notifications():
    return NotificationChannel(ttl_seconds=0.05)


@pytest.fixture
def sales_path():
    return CollectionPath(app_id=APP_ID, owner_id=OWNER, kind=RecordKind.SALES)


@pytest.fixture
def expenses_path():
    return CollectionPath(app_id=APP_ID, owner_id=OWNER, kind=RecordKind.EXPENSES)


@pytest.fixture
def ledger(identity, remote, notifications):
    return Ledger(
        identity_provider=identity,
        remote=remote,
        app_id=APP_ID,
        notifications=notifications,
    )


@pytest.fixture
def settle():
    """Let scheduled deliveries run."""
    async def _settle(rounds: int = 5) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)
    return _settle
