"""Bearer token transport for httpx clients.

Wraps an inner transport and stamps every outgoing request with an
``Authorization: Bearer <token>`` header, refreshing the shared
authorization state first when its access token has expired.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from oauth_bearer.client import OAuth2ClientHandle
from oauth_bearer.models.errors import TokenError
from oauth_bearer.models.tokens import AuthorizationState

logger = logging.getLogger(__name__)


class BearerTokenTransport(httpx.AsyncBaseTransport):
    """Transport that attaches a bearer token before delegating a request.

    Operates in one of two modes:
    - Static: a fixed token string is sent on every request.
    - Managed: the token is read from a shared AuthorizationState, which is
      refreshed through the client handle once its expiration has passed.

    Refresh is lazy. Nothing happens before expiry and a failed refresh is
    not retried; the error propagates and the request is not sent.
    """

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport | None = None,
        *,
        bearer_token: str | None = None,
        client: OAuth2ClientHandle | None = None,
        state: AuthorizationState | None = None,
    ):
        if bearer_token is None and (client is None or state is None):
            raise ValueError("Either bearer_token or both client and state are required")

        self._inner = inner or httpx.AsyncHTTPTransport()
        self.bearer_token = bearer_token
        self.client = client
        self.state = state

        # Guards the check-expiry/refresh/read-token sequence
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def static(
        cls, bearer_token: str, inner: httpx.AsyncBaseTransport | None = None
    ) -> BearerTokenTransport:
        """Create a transport that always sends the same token."""
        return cls(inner, bearer_token=bearer_token)

    @classmethod
    def managed(
        cls,
        client: OAuth2ClientHandle,
        state: AuthorizationState,
        inner: httpx.AsyncBaseTransport | None = None,
    ) -> BearerTokenTransport:
        """Create a transport that refreshes ``state`` through ``client``."""
        return cls(inner, client=client, state=state)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        token = await self._current_token()
        request.headers["Authorization"] = f"Bearer {token}"
        return await self._inner.handle_async_request(request)

    async def _current_token(self) -> str:
        if self.bearer_token is not None:
            return self.bearer_token

        async with self._refresh_lock:
            if self.state.is_expired():
                logger.debug(
                    f"Access token expired at {self.state.access_token_expiration_utc}, "
                    "refreshing"
                )
                await self.client.refresh(self.state)

            if self.state.access_token is None:
                raise TokenError("Authorization state holds no access token")
            return self.state.access_token

    async def aclose(self) -> None:
        await self._inner.aclose()
