"""Identity services package."""

from sales_ledger.services.identity.interface import (
    AuthError,
    Identity,
    IdentityHandler,
    IdentityProvider,
)
from sales_ledger.services.identity.firebase_auth import FirebaseIdentityProvider
from sales_ledger.services.identity.local import LocalIdentityProvider

__all__ = [
    "AuthError",
    "FirebaseIdentityProvider",
    "Identity",
    "IdentityHandler",
    "IdentityProvider",
    "LocalIdentityProvider",
]
