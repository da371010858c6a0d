"""OAuth 2.0 token endpoint service.

Implements the RFC 6749 token endpoint interactions used by the bearer
handler: authorization code exchange, client credentials grant and
refresh token grant.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from oauth_bearer.models.errors import TokenError
from oauth_bearer.models.tokens import (
    AuthorizationCodeRequest,
    ClientCredentialsRequest,
    RefreshTokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

TOKEN_REQUEST_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class OAuth2TokenManager:
    """Manages OAuth 2.0 token endpoint operations.

    Handles the token endpoint interactions including:
    - Authorization code to access token exchange (RFC 6749 Section 4.1.3)
    - Client credentials grant (RFC 6749 Section 4.4)
    - Access token refresh (RFC 6749 Section 6)

    Uses application/x-www-form-urlencoded encoding with the client
    credentials posted as form parameters.
    """

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize OAuth token manager.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Optional client to send token requests with. A client
                passed in is left open by close()
        """
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: AuthorizationCodeRequest
    ) -> TokenResponse:
        """Exchange authorization code for access token.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenResponse: Token response (success or error)

        Raises:
            TokenError: If token exchange fails due to network/parsing issues
        """
        return await self._request_token(
            token_request.token_endpoint, token_request.to_form_data()
        )

    async def request_client_credentials_token(
        self, token_request: ClientCredentialsRequest
    ) -> TokenResponse:
        """Request an access token for the client itself.

        Args:
            token_request: Client credentials request parameters

        Returns:
            TokenResponse: Token response (success or error)

        Raises:
            TokenError: If the request fails due to network/parsing issues
        """
        return await self._request_token(
            token_request.token_endpoint, token_request.to_form_data()
        )

    async def refresh_access_token(
        self, refresh_request: RefreshTokenRequest
    ) -> TokenResponse:
        """Refresh an access token using a refresh token.

        Args:
            refresh_request: Refresh token request parameters

        Returns:
            TokenResponse: New token response (success or error)

        Raises:
            TokenError: If token refresh fails due to network/parsing issues
        """
        return await self._request_token(
            refresh_request.token_endpoint, refresh_request.to_form_data()
        )

    async def _request_token(
        self, token_endpoint: str, form_data: dict[str, str]
    ) -> TokenResponse:
        grant_type = form_data["grant_type"]
        logger.debug(
            f"Token request: grant_type={grant_type}, "
            f"client_id={form_data['client_id']}, endpoint={token_endpoint}"
        )

        try:
            response = await self._http_client.post(
                token_endpoint,
                data=form_data,
                headers=TOKEN_REQUEST_HEADERS,
            )
        except httpx.HTTPError as e:
            raise TokenError(f"HTTP error during {grant_type} request: {e}") from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse token endpoint response into TokenResponse.

        Handles both successful responses (2xx) and error responses (400+)
        according to RFC 6749 Section 5.

        Raises:
            TokenError: If response cannot be parsed
        """
        try:
            response_data = response.json()
        except ValueError as e:
            raise TokenError(
                f"Invalid token response format (HTTP {response.status_code}): {e}"
            ) from e

        if not isinstance(response_data, dict):
            raise TokenError("Token response is not a JSON object")

        succeeded = 200 <= response.status_code < 300

        if succeeded and "access_token" not in response_data:
            raise TokenError("Token response missing required access_token")

        try:
            token_response = TokenResponse(**response_data)
        except ValidationError as e:
            raise TokenError(f"Invalid token response format: {e}") from e

        if succeeded:
            logger.info("Token request successful")
        else:
            logger.warning(
                f"Token request failed with {response.status_code}: "
                f"{token_response.describe_error()}"
            )
            if not token_response.is_error():
                token_response.error = "unknown_error"

        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._owns_client:
            await self._http_client.aclose()
