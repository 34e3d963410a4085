"""
Abstract Identity Provider

The ledger only needs a stable owner id and, for backends that enforce
per-user rules, a token proving it. Everything else about sign-in is the
provider's business.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """A signed-in user."""
    model_config = ConfigDict(frozen=True)

    uid: str = Field(
        ...,
        min_length=1,
        description="Stable owner id; scopes the user's collections"
    )
    id_token: Optional[str] = Field(
        default=None,
        repr=False,
        description="Bearer token for the remote store"
    )
    refresh_token: Optional[str] = Field(default=None, repr=False)
    expires_in: Optional[int] = Field(
        default=None,
        ge=0,
        description="Seconds the ID token stays valid after it was issued"
    )
    is_anonymous: bool = False


IdentityHandler = Callable[[Optional[Identity]], None]


class AuthError(Exception):
    """Sign-in failed."""
    pass


class IdentityProvider(ABC):
    """
    Abstract interface for sign-in.

    Implementations call every registered handler whenever the signed-in
    identity changes, with None on sign-out.
    """

    def __init__(self):
        self._handlers: list[IdentityHandler] = []
        self._identity: Optional[Identity] = None

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def on_identity_change(self, handler: IdentityHandler) -> Callable[[], None]:
        """
        Register a handler for identity changes.

        Returns:
            A callable that unregisters the handler (safe to call twice)
        """
        self._handlers.append(handler)

        def unregister() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unregister

    def _set_identity(self, identity: Optional[Identity]) -> None:
        self._identity = identity
        for handler in list(self._handlers):
            handler(identity)

    @abstractmethod
    async def sign_in_anonymous(self) -> Identity:
        """
        Sign in without credentials.

        Raises:
            AuthError: If sign-in fails
        """
        pass

    @abstractmethod
    async def sign_in_with_token(self, token: str) -> Identity:
        """
        Sign in with a token issued by the application backend.

        Raises:
            AuthError: If the token is rejected or sign-in fails
        """
        pass

    async def sign_out(self) -> None:
        """Forget the current identity."""
        self._set_identity(None)
