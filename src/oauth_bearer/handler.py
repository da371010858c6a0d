"""Bearer token handler construction.

Obtains an authorization state, either a client-only token or a user token,
and wraps it in a BearerTokenTransport ready to be used by an httpx client.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from oauth_bearer.client import ClientKind, OAuth2ClientHandle
from oauth_bearer.models.config import HandlerConfig
from oauth_bearer.models.server import build_server_description
from oauth_bearer.models.tokens import AuthorizationState
from oauth_bearer.services.tokens import OAuth2TokenManager
from oauth_bearer.transport import BearerTokenTransport

logger = logging.getLogger(__name__)


class AuthorizeCodeProvider(Protocol):
    """Protocol for handling the interactive user authorization step.

    Allows different strategies for browser interaction:
    - Manual (print the URL, paste back the redirect)
    - Browser automation (open browser + local callback server)
    - Custom UI integration
    """

    async def get_code_uri(self, authorization_url: str, redirect_url: str) -> str:
        """Send the user to ``authorization_url`` and return the redirect.

        Args:
            authorization_url: Authorization URL for user to visit
            redirect_url: Redirect URI the authorization server will call

        Returns:
            The full URL the authorization server redirected to, carrying
            the authorization code
        """
        ...


class CallbackCodeProvider:
    """Code provider that delegates to an async callable."""

    def __init__(self, callback: Callable[[str, str], Awaitable[str]]):
        self.callback = callback

    async def get_code_uri(self, authorization_url: str, redirect_url: str) -> str:
        return await self.callback(authorization_url, redirect_url)


@dataclass
class ClientHandlerInfo:
    """Bearer transport together with the authorization state it uses.

    ``state`` is the same object the transport refreshes, so persisting it
    after requests captures any refreshed tokens.
    """

    handler: BearerTokenTransport
    state: AuthorizationState | None
    client: OAuth2ClientHandle | None = None

    def http_client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Create an httpx client that sends requests through the handler."""
        return httpx.AsyncClient(transport=self.handler, **kwargs)

    async def aclose(self) -> None:
        await self.handler.aclose()
        if self.client is not None:
            await self.client.close()

    async def __aenter__(self) -> ClientHandlerInfo:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def acquire_authorization(
    auth_base_uri: str,
    client_id: str,
    client_secret: str,
    scopes: Sequence[str],
    existing_state: AuthorizationState | None = None,
    require_user_token: bool = False,
    redirect_uri: str | None = None,
    code_provider: AuthorizeCodeProvider | None = None,
    *,
    timeout: float = 30.0,
    http_client: httpx.AsyncClient | None = None,
) -> tuple[OAuth2ClientHandle, AuthorizationState]:
    """Build a client handle and obtain an authorization state.

    When ``existing_state`` is given it is returned unchanged and no network
    call is made; the caller is trusted to supply a state that is still
    valid or can be refreshed.

    Args:
        auth_base_uri: Base URI of the authorization server
        client_id: Client identifier
        client_secret: Client secret
        scopes: Scopes to request
        existing_state: State saved from a previous session
        require_user_token: True for the authorization code flow, False for
            a client-only token
        redirect_uri: Registered redirect URI, required for user tokens
        code_provider: Performs the interactive login, required for user tokens
        timeout: Token endpoint request timeout in seconds
        http_client: Optional httpx client for token endpoint requests

    Returns:
        Tuple of (client handle, authorization state)

    Raises:
        ValueError: If user token arguments are missing or the base URI is empty
        OAuth2Error: If authorization or token exchange fails
    """
    if require_user_token:
        if code_provider is None:
            raise ValueError(
                "code_provider cannot be None if require_user_token is true"
            )
        if not redirect_uri:
            raise ValueError(
                "redirect_uri cannot be empty if require_user_token is true"
            )

    server = build_server_description(auth_base_uri)
    token_manager = OAuth2TokenManager(timeout=timeout, http_client=http_client)
    kind = ClientKind.USER_AGENT if require_user_token else ClientKind.WEB_SERVER
    client = OAuth2ClientHandle(
        kind, server, client_id, client_secret, token_manager=token_manager
    )

    if existing_state is not None:
        logger.debug(f"Reusing existing authorization state for {client_id}")
        return client, existing_state

    try:
        if require_user_token:
            logger.info(f"Starting user authorization for {client_id}")
            auth_url, expected_state = client.request_user_authorization(
                scopes, redirect_uri
            )
            callback_url = await code_provider.get_code_uri(auth_url, redirect_uri)

            state = AuthorizationState(callback=redirect_uri, scope=list(scopes))
            await client.exchange(state, callback_url, expected_state=expected_state)
        else:
            logger.info(f"Requesting client credentials token for {client_id}")
            state = AuthorizationState(scope=list(scopes))
            await client.exchange(state)
    except BaseException:
        await client.close()
        raise

    return client, state


async def create_handler(
    auth_base_uri: str,
    client_id: str,
    client_secret: str,
    scopes: Sequence[str],
    existing_state: AuthorizationState | None = None,
    require_user_token: bool = False,
    redirect_uri: str | None = None,
    code_provider: AuthorizeCodeProvider | None = None,
    *,
    inner: httpx.AsyncBaseTransport | None = None,
    timeout: float = 30.0,
    http_client: httpx.AsyncClient | None = None,
) -> ClientHandlerInfo:
    """Create a bearer token handler for client-only or user authentication.

    Returns:
        ClientHandlerInfo holding the transport and the auth state. The
        state may be persisted and passed back in on future runs to keep
        the login.
    """
    client, state = await acquire_authorization(
        auth_base_uri,
        client_id,
        client_secret,
        scopes,
        existing_state,
        require_user_token,
        redirect_uri,
        code_provider,
        timeout=timeout,
        http_client=http_client,
    )
    handler = BearerTokenTransport.managed(client, state, inner)
    return ClientHandlerInfo(handler=handler, state=state, client=client)


async def create_handler_from_config(
    config: HandlerConfig,
    existing_state: AuthorizationState | None = None,
    code_provider: AuthorizeCodeProvider | None = None,
    inner: httpx.AsyncBaseTransport | None = None,
) -> ClientHandlerInfo:
    """Create a bearer token handler from a validated HandlerConfig."""
    return await create_handler(
        config.auth_base_uri,
        config.client_id,
        config.client_secret,
        config.scopes,
        existing_state,
        config.require_user_token,
        config.redirect_uri,
        code_provider,
        inner=inner,
        timeout=config.timeout,
    )


def create_static_handler(
    bearer_token: str, inner: httpx.AsyncBaseTransport | None = None
) -> ClientHandlerInfo:
    """Create a handler that always sends ``bearer_token``."""
    return ClientHandlerInfo(
        handler=BearerTokenTransport.static(bearer_token, inner), state=None
    )
