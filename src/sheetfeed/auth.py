"""Authentication state for feed requests.

Three modes are supported:
1. Anonymous - no Authorization header, public sheets only
2. Token - a caller-supplied static token
3. Service account - a token issued from service account key material and
   renewed automatically once it expires

Note: renewal is not locked. Callers issuing truly concurrent requests must
serialize them, otherwise two requests that both see an expired token will
both re-authorize.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from loguru import logger

from sheetfeed.exceptions import AuthError

BEARER = "Bearer"


class AuthMode(Enum):
    ANONYMOUS = "anonymous"
    TOKEN = "token"
    SERVICE_ACCOUNT = "service_account"


@dataclass
class AuthToken:
    """An access token and how to present it.

    Attributes:
        value: The token itself.
        type: ``"Bearer"`` for OAuth2 tokens; anything else is sent in the
            legacy ``GoogleLogin auth=`` form.
        expires_at: Unix timestamp when the token expires, if known.
    """

    value: str
    type: str = BEARER
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def header_value(self) -> str:
        if self.type == BEARER:
            return f"Bearer {self.value}"
        return f"GoogleLogin auth={self.value}"


class CredentialIssuer(Protocol):
    """Anything that can produce a fresh access token."""

    async def authorize(self) -> AuthToken: ...


class ServiceAccountIssuer:
    """Issues tokens from a service account key using google-auth.

    Note: google-auth refreshes synchronously, so the refresh runs in a
    worker thread to keep the event loop free.
    """

    def __init__(self, credentials: service_account.Credentials) -> None:
        self._credentials = credentials

    @classmethod
    def from_key(
        cls, key: Mapping[str, Any] | str | Path, scopes: list[str]
    ) -> ServiceAccountIssuer:
        """Build an issuer from key material.

        Args:
            key: Service account info dict, or a path to the JSON key file.
            scopes: OAuth scopes to request.
        """
        try:
            if isinstance(key, Mapping):
                credentials = service_account.Credentials.from_service_account_info(
                    dict(key), scopes=scopes
                )
            else:
                credentials = service_account.Credentials.from_service_account_file(
                    str(key), scopes=scopes
                )
        except (ValueError, OSError) as e:
            raise AuthError(f"Invalid service account credentials: {e}", e) from e
        return cls(credentials)

    @property
    def service_account_email(self) -> str:
        return self._credentials.service_account_email

    async def authorize(self) -> AuthToken:
        try:
            await asyncio.to_thread(self._credentials.refresh, Request())
        except GoogleAuthError as e:
            raise AuthError(f"Service account authorization failed: {e}", e) from e

        expiry = self._credentials.expiry
        # google-auth reports expiry as a naive UTC datetime
        expires_at = expiry.replace(tzinfo=UTC).timestamp() if expiry else None
        return AuthToken(value=self._credentials.token, type=BEARER, expires_at=expires_at)


class AuthManager:
    """Holds the current credential and renews it when needed.

    Mode only moves forward: supplying a token promotes ANONYMOUS to TOKEN,
    and installing an issuer switches to SERVICE_ACCOUNT.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._mode = AuthMode.ANONYMOUS
        self._token: AuthToken | None = None
        self._issuer: CredentialIssuer | None = None

    @property
    def mode(self) -> AuthMode:
        return self._mode

    @property
    def token(self) -> AuthToken | None:
        return self._token

    @property
    def is_active(self) -> bool:
        return self._token is not None

    def set_token(self, token: AuthToken | str | None) -> None:
        """Install a static token. A bare string is sent in the legacy form."""
        if isinstance(token, str):
            token = AuthToken(value=token, type="GoogleLogin")
        if self._mode is AuthMode.ANONYMOUS and token is not None:
            self._mode = AuthMode.TOKEN
        self._token = token

    async def use_issuer(self, issuer: CredentialIssuer) -> None:
        """Switch to service-account mode and fetch the first token."""
        self._issuer = issuer
        self._mode = AuthMode.SERVICE_ACCOUNT
        await self.renew()

    async def renew(self) -> None:
        if self._issuer is None:
            raise AuthError("No credential issuer configured")
        token = await self._issuer.authorize()
        logger.info("Renewed service account token", expires_at=token.expires_at)
        self.set_token(token)

    async def ensure_valid(self) -> None:
        """Renew an expired service account token before a request goes out."""
        if self._mode is not AuthMode.SERVICE_ACCOUNT:
            return
        if self._token is None or self._token.is_expired(self._clock()):
            await self.renew()

    def headers(self) -> dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": self._token.header_value()}
