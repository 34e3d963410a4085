"""
Local Identity Provider

Signs in without any network, for local runs against the in-memory store.
Anonymous sign-in yields one uid for the life of the provider; a custom
token is trusted as the uid itself.
"""

from typing import Optional
from uuid import uuid4

from sales_ledger.services.identity.interface import AuthError, Identity, IdentityProvider


class LocalIdentityProvider(IdentityProvider):
    """In-process identity provider with no verification."""

    def __init__(self, anonymous_uid: Optional[str] = None):
        super().__init__()
        self._anonymous_uid = anonymous_uid or f"local-{uuid4().hex[:12]}"

    async def sign_in_anonymous(self) -> Identity:
        identity = Identity(uid=self._anonymous_uid, is_anonymous=True)
        self._set_identity(identity)
        return identity

    async def sign_in_with_token(self, token: str) -> Identity:
        if not token or not token.strip():
            raise AuthError("Empty sign-in token")
        identity = Identity(uid=token.strip(), id_token=token.strip())
        self._set_identity(identity)
        return identity
