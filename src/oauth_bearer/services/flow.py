"""OAuth 2.0 authorization code flow service.

Builds the authorization URL a user visits to grant consent, and parses
and validates the redirect the authorization server sends back.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from urllib.parse import parse_qs, urlparse

from oauth_bearer.models.errors import (
    AuthorizationCallbackError,
    AuthorizationError,
    StateValidationError,
)
from oauth_bearer.models.flow import AuthorizationRequest, AuthorizationResponse
from oauth_bearer.models.server import ServerDescription
from oauth_bearer.services.security import generate_state, validate_state

logger = logging.getLogger(__name__)


class OAuth2FlowManager:
    """Orchestrates the authorization code flow.

    Handles the flow from initial request generation through callback
    processing, including:
    - State parameter security (CSRF protection)
    - Authorization URL construction
    - Callback URL parsing and validation
    """

    def start_authorization_flow(
        self,
        server: ServerDescription,
        client_id: str,
        redirect_uri: str,
        scopes: Sequence[str] = (),
    ) -> tuple[str, str]:
        """Start an authorization code flow.

        Args:
            server: Authorization server endpoints
            client_id: Client identifier
            redirect_uri: URI to redirect to after authorization
            scopes: Scopes to request

        Returns:
            Tuple of (authorization_url, state)
            - authorization_url: URL for user to visit
            - state: Store this for callback validation

        Raises:
            AuthorizationError: If flow setup fails
        """
        try:
            state = generate_state()
            auth_request = AuthorizationRequest(
                authorization_endpoint=server.authorization_endpoint,
                client_id=client_id,
                redirect_uri=redirect_uri,
                state=state,
                scope=tuple(scopes),
            )
            authorization_url = auth_request.build_authorization_url()
        except Exception as e:
            raise AuthorizationError(f"Failed to start authorization flow: {e}") from e

        logger.info(f"Generated authorization URL for client {client_id}")
        return authorization_url, state

    def handle_authorization_callback(
        self,
        callback_url: str,
        expected_state: str,
    ) -> AuthorizationResponse:
        """Handle the redirect received after user consent.

        Parses the callback URL and validates the state parameter for CSRF
        protection.

        Args:
            callback_url: Full callback URL received from authorization server
            expected_state: State parameter that was sent in authorization request

        Returns:
            AuthorizationResponse: Parsed callback response

        Raises:
            AuthorizationCallbackError: If callback URL is malformed
            StateValidationError: If state parameter doesn't match
        """
        logger.debug("Processing authorization callback")

        auth_response = self.parse_callback_url(callback_url)

        if auth_response.state is None:
            raise StateValidationError(
                "Authorization server callback missing required state parameter"
            )

        validate_state(expected_state, auth_response.state)

        if auth_response.is_success():
            logger.info("Authorization callback successful - received authorization code")
        elif auth_response.is_error():
            logger.warning(
                f"Authorization callback contained error: {auth_response.error} - "
                f"{auth_response.error_description}"
            )
        else:
            logger.warning("Authorization callback missing both code and error")

        return auth_response

    def parse_callback_url(self, callback_url: str) -> AuthorizationResponse:
        """Parse a callback URL without validating its state parameter."""
        try:
            parsed = urlparse(callback_url)
            query_params = parse_qs(parsed.query)
        except ValueError as e:
            raise AuthorizationCallbackError(
                f"Failed to parse callback URL: {e}"
            ) from e

        def get_single_param(key: str) -> str | None:
            values = query_params.get(key, [])
            return values[0] if values else None

        return AuthorizationResponse(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
            error_uri=get_single_param("error_uri"),
        )
