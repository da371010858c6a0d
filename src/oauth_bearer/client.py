"""OAuth 2.0 client handle bound to one authorization server.

A single client type tagged with the kind of OAuth client it acts as. Both
kinds share the same ``exchange`` and ``refresh`` capabilities; the kind
selects which grant ``exchange`` performs.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence

from oauth_bearer.models.errors import (
    AuthorizationError,
    TokenExchangeError,
    TokenRefreshError,
)
from oauth_bearer.models.server import ServerDescription
from oauth_bearer.models.tokens import (
    AuthorizationCodeRequest,
    AuthorizationState,
    ClientCredentialsRequest,
    RefreshTokenRequest,
)
from oauth_bearer.services.flow import OAuth2FlowManager
from oauth_bearer.services.tokens import OAuth2TokenManager

logger = logging.getLogger(__name__)


class ClientKind(enum.Enum):
    """Kind of OAuth client.

    USER_AGENT clients obtain user tokens through the authorization code
    flow. WEB_SERVER clients obtain client-only tokens with the client
    credentials grant.
    """

    USER_AGENT = "user_agent"
    WEB_SERVER = "web_server"


class OAuth2ClientHandle:
    """OAuth client credentials bound to a server description.

    Owns the token and flow services used to obtain and refresh tokens.
    All operations mutate the supplied AuthorizationState in place.
    """

    def __init__(
        self,
        kind: ClientKind,
        server: ServerDescription,
        client_id: str,
        client_secret: str | None = None,
        token_manager: OAuth2TokenManager | None = None,
        flow_manager: OAuth2FlowManager | None = None,
    ):
        self.kind = kind
        self.server = server
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_manager = token_manager or OAuth2TokenManager()
        self.flow_manager = flow_manager or OAuth2FlowManager()

    def __repr__(self) -> str:
        return (
            f"OAuth2ClientHandle(kind={self.kind.value}, client_id={self.client_id!r}, "
            f"token_endpoint={self.server.token_endpoint!r})"
        )

    def request_user_authorization(
        self, scopes: Sequence[str], redirect_uri: str
    ) -> tuple[str, str]:
        """Build the URL the user visits to grant consent.

        Returns:
            Tuple of (authorization_url, state). Pass the state back to
            ``exchange`` as ``expected_state``.
        """
        return self.flow_manager.start_authorization_flow(
            self.server, self.client_id, redirect_uri, scopes
        )

    async def exchange(
        self,
        state: AuthorizationState,
        callback_url: str | None = None,
        expected_state: str | None = None,
    ) -> AuthorizationState:
        """Obtain tokens for this client kind and store them in ``state``.

        WEB_SERVER clients request a client credentials token for
        ``state.scope``. USER_AGENT clients exchange the authorization code
        carried by ``callback_url``, redirecting to ``state.callback``.

        Raises:
            ValueError: If a USER_AGENT exchange is missing its callback data
            AuthorizationError: If the authorization server denied consent
            TokenExchangeError: If the token endpoint rejected the grant
            TokenError: If the token endpoint could not be reached or parsed
        """
        if self.kind is ClientKind.WEB_SERVER:
            token_response = await self.token_manager.request_client_credentials_token(
                ClientCredentialsRequest(
                    token_endpoint=self.server.token_endpoint,
                    client_id=self.client_id,
                    client_secret=self.client_secret,
                    scope=tuple(state.scope),
                )
            )
        else:
            if not callback_url:
                raise ValueError("callback_url is required for a user agent exchange")
            if not state.callback:
                raise ValueError("state.callback must hold the redirect URI")

            if expected_state is not None:
                auth_response = self.flow_manager.handle_authorization_callback(
                    callback_url, expected_state
                )
            else:
                auth_response = self.flow_manager.parse_callback_url(callback_url)

            if not auth_response.is_success():
                raise AuthorizationError(
                    f"Authorization failed: {auth_response.error or 'no code returned'}"
                )

            token_response = await self.token_manager.exchange_code_for_token(
                AuthorizationCodeRequest(
                    token_endpoint=self.server.token_endpoint,
                    code=auth_response.code,
                    redirect_uri=state.callback,
                    client_id=self.client_id,
                    client_secret=self.client_secret,
                )
            )

        if not token_response.is_success():
            raise TokenExchangeError(
                f"Token exchange failed: {token_response.describe_error()}"
            )

        state.update_from_response(token_response)
        logger.info(f"Obtained access token for client {self.client_id}")
        return state

    async def refresh(
        self, state: AuthorizationState, scopes: Sequence[str] | None = None
    ) -> AuthorizationState:
        """Refresh the access token held by ``state``.

        Args:
            state: Authorization state to refresh in place
            scopes: Optional scope restriction; None keeps the granted scope

        Raises:
            TokenRefreshError: If there is no refresh token or the server
                rejected the refresh. The state is left unchanged.
            TokenError: If the token endpoint could not be reached or parsed
        """
        if not state.can_refresh():
            raise TokenRefreshError(
                "Access token expired and no refresh token is available"
            )

        token_response = await self.token_manager.refresh_access_token(
            RefreshTokenRequest(
                token_endpoint=self.server.token_endpoint,
                refresh_token=state.refresh_token,
                client_id=self.client_id,
                client_secret=self.client_secret,
                scope=tuple(scopes or ()),
            )
        )

        if not token_response.is_success():
            raise TokenRefreshError(
                f"Token refresh failed: {token_response.describe_error()}"
            )

        state.update_from_response(token_response)
        logger.info(f"Refreshed access token for client {self.client_id}")
        return state

    async def close(self) -> None:
        await self.token_manager.close()
