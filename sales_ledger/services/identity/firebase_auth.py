"""
Firebase Authentication via the Identity Toolkit REST API

Supports the two sign-in modes the ledger uses:
- anonymous sign-in (accounts:signUp with no credentials)
- custom token sign-in (accounts:signInWithCustomToken), followed by
  accounts:lookup because that endpoint does not return the uid

ID tokens expire after about an hour. While signed in, the provider
exchanges its refresh token at the Secure Token endpoint shortly before
expiry and announces the renewed identity, so the remote store can be
re-authorized before its listeners are cut off.

When FIREBASE_AUTH_EMULATOR_HOST is set, requests go to the emulator.

Sign-in is attempted once per call. A failure raises AuthError and the
caller decides what to tell the user. A failed refresh is logged and
retried; the current identity is kept until sign-out.
"""

import asyncio
import os
from typing import Any, Optional

import httpx

from sales_ledger.config import get_settings
from sales_ledger.events import EventLogger
from sales_ledger.models.events import LedgerEventBuilder
from sales_ledger.services.identity.interface import (
    AuthError,
    Identity,
    IdentityProvider,
)


IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1"

# Refresh this long before the ID token expires
DEFAULT_REFRESH_MARGIN_SECONDS = 300.0
DEFAULT_REFRESH_RETRY_SECONDS = 30.0


def _emulator_url(service: str) -> Optional[str]:
    emulator_host = (os.getenv("FIREBASE_AUTH_EMULATOR_HOST") or "").strip()
    if emulator_host:
        return f"http://{emulator_host}/{service}/v1"
    return None


def _default_base_url() -> str:
    return _emulator_url("identitytoolkit.googleapis.com") or IDENTITY_TOOLKIT_URL


def _default_secure_token_url() -> str:
    return _emulator_url("securetoken.googleapis.com") or SECURE_TOKEN_URL


def _expires_in(value: Any) -> Optional[int]:
    """Firebase sends token lifetimes as strings of seconds."""
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


class FirebaseIdentityProvider(IdentityProvider):
    """
    Identity provider backed by Firebase Authentication.

    Args:
        api_key: Firebase Web API key (defaults to FIREBASE_API_KEY)
        timeout: Request timeout in seconds
        client: httpx client to use; one is created (and owned) if omitted
        base_url: Override the Identity Toolkit endpoint
        secure_token_url: Override the Secure Token endpoint
        refresh_margin: Seconds before expiry at which the ID token is renewed
        refresh_retry: Seconds to wait after a failed renewal
        event_logger: Where refresh outcomes are logged
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        secure_token_url: Optional[str] = None,
        refresh_margin: float = DEFAULT_REFRESH_MARGIN_SECONDS,
        refresh_retry: float = DEFAULT_REFRESH_RETRY_SECONDS,
        event_logger: Optional[EventLogger] = None,
    ):
        super().__init__()
        if api_key is None or timeout is None:
            settings = get_settings().firebase
            api_key = api_key or settings.api_key
            timeout = timeout or settings.request_timeout_seconds
        self._api_key = api_key
        self._timeout = timeout
        self._base_url = (base_url or _default_base_url()).rstrip("/")
        self._secure_token_url = (secure_token_url or _default_secure_token_url()).rstrip("/")
        self._refresh_margin = refresh_margin
        self._refresh_retry = refresh_retry
        self._events = event_logger or EventLogger()
        self._client = client
        self._owns_client = client is None
        self._refresh_task: Optional[asyncio.Task] = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _send(self, endpoint: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self._http().post(
                endpoint,
                params={"key": self._api_key},
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Could not reach Firebase Auth: {e}") from e

        name = endpoint.rsplit("/", 1)[-1]
        if response.status_code != 200:
            raise AuthError(f"Firebase Auth rejected {name}: {self._error_code(response)}")

        try:
            return response.json()
        except ValueError as e:
            raise AuthError(f"Malformed response from {name}") from e

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._send(f"{self._base_url}/{endpoint}", json=payload)

    @staticmethod
    def _error_code(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"HTTP {response.status_code}"

    async def sign_in_anonymous(self) -> Identity:
        data = await self._post("accounts:signUp", {"returnSecureToken": True})
        try:
            identity = Identity(
                uid=data["localId"],
                id_token=data["idToken"],
                refresh_token=data.get("refreshToken"),
                expires_in=_expires_in(data.get("expiresIn")),
                is_anonymous=True,
            )
        except KeyError as e:
            raise AuthError(f"Sign-up response missing {e}") from e
        self._signed_in(identity)
        return identity

    async def sign_in_with_token(self, token: str) -> Identity:
        data = await self._post(
            "accounts:signInWithCustomToken",
            {"token": token, "returnSecureToken": True},
        )
        id_token = data.get("idToken")
        if not id_token:
            raise AuthError("Custom token sign-in returned no ID token")

        lookup = await self._post("accounts:lookup", {"idToken": id_token})
        users = lookup.get("users") or []
        if not users or not users[0].get("localId"):
            raise AuthError("Could not resolve the signed-in user")

        identity = Identity(
            uid=users[0]["localId"],
            id_token=id_token,
            refresh_token=data.get("refreshToken"),
            expires_in=_expires_in(data.get("expiresIn")),
            is_anonymous=False,
        )
        self._signed_in(identity)
        return identity

    async def refresh(self) -> Identity:
        """
        Exchange the refresh token for a new ID token.

        Raises:
            AuthError: If nobody is signed in, there is no refresh token,
                or the Secure Token endpoint rejects it
        """
        current = self._identity
        if current is None or not current.refresh_token:
            raise AuthError("No refresh token to exchange")

        data = await self._send(
            f"{self._secure_token_url}/token",
            data={"grant_type": "refresh_token", "refresh_token": current.refresh_token},
        )
        if not data.get("id_token"):
            raise AuthError("Token refresh returned no ID token")

        identity = Identity(
            uid=data.get("user_id") or current.uid,
            id_token=data["id_token"],
            refresh_token=data.get("refresh_token") or current.refresh_token,
            expires_in=_expires_in(data.get("expires_in")),
            is_anonymous=current.is_anonymous,
        )
        # Signed out while the request was in flight
        if self._identity is not current:
            return identity
        self._events.log(LedgerEventBuilder.token_refreshed(identity.uid, identity.expires_in))
        self._signed_in(identity)
        return identity

    def _signed_in(self, identity: Identity) -> None:
        self._set_identity(identity)
        self._schedule_refresh(identity)

    def _schedule_refresh(self, identity: Identity) -> None:
        self._cancel_refresh()
        if not identity.refresh_token or identity.expires_in is None:
            return
        delay = max(identity.expires_in - self._refresh_margin, 0.0)
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_later(delay))

    async def _refresh_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        while True:
            try:
                await self.refresh()
                return
            except AuthError as e:
                uid = self._identity.uid if self._identity else None
                self._events.log(LedgerEventBuilder.token_refresh_failed(uid, str(e)))
            await asyncio.sleep(self._refresh_retry)

    def _cancel_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        # A successful refresh reschedules from inside the running refresh task
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def sign_out(self) -> None:
        self._cancel_refresh()
        await super().sign_out()

    async def aclose(self) -> None:
        """Stop token renewal and close the HTTP client if this provider created it."""
        self._cancel_refresh()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
