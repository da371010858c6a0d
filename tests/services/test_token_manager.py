"""Tests for OAuth 2.0 token endpoint requests.

High-impact tests covering the token endpoint interactions:
- Authorization code exchange with client secret form parameters
- Client credentials grant with scopes
- Token refresh functionality
- Error response handling and OAuth error codes
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from oauth_bearer.models.errors import TokenError
from oauth_bearer.models.tokens import (
    AuthorizationCodeRequest,
    ClientCredentialsRequest,
    RefreshTokenRequest,
)
from oauth_bearer.services.tokens import OAuth2TokenManager

TOKEN_ENDPOINT = "https://auth.example.com/oauth/v2/token"


def make_response(status_code: int, payload: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestAuthorizationCodeExchange:
    """Test authorization code to access token exchange."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()

    async def test_successful_exchange_posts_form_data(self):
        """Test successful exchange with complete response."""
        # Arrange
        token_request = AuthorizationCodeRequest(
            token_endpoint=TOKEN_ENDPOINT,
            code="auth-code-123",
            redirect_uri="https://myapp.com/callback",
            client_id="client-456",
            client_secret="secret-789",
        )
        self.token_manager._http_client.post.return_value = make_response(
            200,
            {
                "access_token": "access-token-xyz",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "refresh-token-abc",
                "scope": "read write",
            },
        )

        # Act
        token_response = await self.token_manager.exchange_code_for_token(token_request)

        # Assert
        assert token_response.is_success()
        assert token_response.access_token == "access-token-xyz"
        assert token_response.expires_in == 3600
        assert token_response.refresh_token == "refresh-token-abc"

        self.token_manager._http_client.post.assert_awaited_once()
        call_args = self.token_manager._http_client.post.call_args
        assert call_args[0][0] == TOKEN_ENDPOINT

        form_data = call_args[1]["data"]
        assert form_data == {
            "grant_type": "authorization_code",
            "code": "auth-code-123",
            "redirect_uri": "https://myapp.com/callback",
            "client_id": "client-456",
            "client_secret": "secret-789",
        }

        headers = call_args[1]["headers"]
        assert headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert headers["Accept"] == "application/json"
        assert "json" not in call_args[1]

    async def test_invalid_grant_error_is_returned(self):
        """Test handling of invalid_grant OAuth error."""
        # Arrange
        token_request = AuthorizationCodeRequest(
            token_endpoint=TOKEN_ENDPOINT,
            code="expired-code-123",
            redirect_uri="https://myapp.com/callback",
            client_id="client-456",
        )
        self.token_manager._http_client.post.return_value = make_response(
            400,
            {
                "error": "invalid_grant",
                "error_description": "Authorization code has expired",
            },
        )

        # Act
        token_response = await self.token_manager.exchange_code_for_token(token_request)

        # Assert
        assert token_response.is_error()
        assert not token_response.is_success()
        assert token_response.error == "invalid_grant"
        assert token_response.describe_error() == (
            "invalid_grant: Authorization code has expired"
        )

    async def test_missing_access_token_in_success_response(self):
        """Test handling of malformed success response missing access_token."""
        # Arrange
        token_request = AuthorizationCodeRequest(
            token_endpoint=TOKEN_ENDPOINT,
            code="auth-code-123",
            redirect_uri="https://myapp.com/callback",
            client_id="client-456",
        )
        self.token_manager._http_client.post.return_value = make_response(
            200, {"token_type": "Bearer"}
        )

        # Act & Assert
        with pytest.raises(TokenError) as exc_info:
            await self.token_manager.exchange_code_for_token(token_request)

        assert "missing required access_token" in str(exc_info.value)

    async def test_error_status_without_error_code_is_an_error(self):
        # Arrange
        token_request = AuthorizationCodeRequest(
            token_endpoint=TOKEN_ENDPOINT,
            code="auth-code-123",
            redirect_uri="https://myapp.com/callback",
            client_id="client-456",
        )
        self.token_manager._http_client.post.return_value = make_response(
            500, {"message": "internal failure"}
        )

        # Act
        token_response = await self.token_manager.exchange_code_for_token(token_request)

        # Assert
        assert token_response.is_error()
        assert token_response.error == "unknown_error"


class TestClientCredentials:
    """Test the client credentials grant."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()

    async def test_client_credentials_request_includes_scopes(self):
        # Arrange
        token_request = ClientCredentialsRequest(
            token_endpoint=TOKEN_ENDPOINT,
            client_id="client-456",
            client_secret="secret-789",
            scope=("query_api", "talk_tower"),
        )
        self.token_manager._http_client.post.return_value = make_response(
            200, {"access_token": "client-token", "expires_in": 600}
        )

        # Act
        token_response = await self.token_manager.request_client_credentials_token(
            token_request
        )

        # Assert
        assert token_response.is_success()
        assert token_response.refresh_token is None

        form_data = self.token_manager._http_client.post.call_args[1]["data"]
        assert form_data == {
            "grant_type": "client_credentials",
            "client_id": "client-456",
            "client_secret": "secret-789",
            "scope": "query_api talk_tower",
        }

    async def test_invalid_client_error(self):
        """Test handling of invalid_client OAuth error."""
        # Arrange
        token_request = ClientCredentialsRequest(
            token_endpoint=TOKEN_ENDPOINT,
            client_id="invalid-client",
            client_secret="wrong",
        )
        self.token_manager._http_client.post.return_value = make_response(
            401,
            {
                "error": "invalid_client",
                "error_description": "Client authentication failed",
            },
        )

        # Act
        token_response = await self.token_manager.request_client_credentials_token(
            token_request
        )

        # Assert
        assert token_response.is_error()
        assert token_response.error == "invalid_client"

        form_data = self.token_manager._http_client.post.call_args[1]["data"]
        assert "scope" not in form_data

    async def test_created_status_is_success(self):
        """Test that any 2xx status is treated as a successful response."""
        # Arrange
        token_request = ClientCredentialsRequest(
            token_endpoint=TOKEN_ENDPOINT,
            client_id="client-456",
        )
        self.token_manager._http_client.post.return_value = make_response(
            201, {"access_token": "created-token", "token_type": "Bearer"}
        )

        # Act
        token_response = await self.token_manager.request_client_credentials_token(
            token_request
        )

        # Assert
        assert token_response.is_success()
        assert token_response.error is None
        assert token_response.access_token == "created-token"

    async def test_created_status_without_access_token_raises(self):
        # Arrange
        token_request = ClientCredentialsRequest(
            token_endpoint=TOKEN_ENDPOINT,
            client_id="client-456",
        )
        self.token_manager._http_client.post.return_value = make_response(
            201, {"token_type": "Bearer"}
        )

        # Act & Assert
        with pytest.raises(TokenError, match="access_token"):
            await self.token_manager.request_client_credentials_token(token_request)


class TestTokenRefresh:
    """Test token refresh functionality."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()

    async def test_successful_token_refresh(self):
        """Test successful token refresh."""
        # Arrange
        refresh_request = RefreshTokenRequest(
            token_endpoint=TOKEN_ENDPOINT,
            refresh_token="refresh-token-abc",
            client_id="client-456",
            client_secret="secret-789",
        )
        self.token_manager._http_client.post.return_value = make_response(
            200,
            {
                "access_token": "new-access-token-xyz",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "new-refresh-token-def",
            },
        )

        # Act
        token_response = await self.token_manager.refresh_access_token(refresh_request)

        # Assert
        assert token_response.is_success()
        assert token_response.access_token == "new-access-token-xyz"
        assert token_response.refresh_token == "new-refresh-token-def"

        form_data = self.token_manager._http_client.post.call_args[1]["data"]
        assert form_data["grant_type"] == "refresh_token"
        assert form_data["refresh_token"] == "refresh-token-abc"
        assert form_data["client_id"] == "client-456"
        assert form_data["client_secret"] == "secret-789"
        assert "scope" not in form_data

    async def test_refresh_token_error(self):
        """Test handling of refresh token errors."""
        # Arrange
        refresh_request = RefreshTokenRequest(
            token_endpoint=TOKEN_ENDPOINT,
            refresh_token="invalid-refresh-token",
            client_id="client-456",
        )
        self.token_manager._http_client.post.return_value = make_response(
            400,
            {
                "error": "invalid_grant",
                "error_description": "Refresh token has expired",
            },
        )

        # Act
        token_response = await self.token_manager.refresh_access_token(refresh_request)

        # Assert
        assert token_response.is_error()
        assert token_response.error_description == "Refresh token has expired"


class TestHttpErrors:
    """Test HTTP-level errors and network issues."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()
        self.token_request = ClientCredentialsRequest(
            token_endpoint=TOKEN_ENDPOINT,
            client_id="client-456",
        )

    async def test_network_error_raises_token_error(self):
        """Test that network errors are wrapped in TokenError."""
        # Arrange
        self.token_manager._http_client.post.side_effect = httpx.ConnectError(
            "Connection failed"
        )

        # Act & Assert
        with pytest.raises(TokenError) as exc_info:
            await self.token_manager.request_client_credentials_token(
                self.token_request
            )

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_non_json_error_response_raises_token_error(self):
        """Test that non-JSON error responses raise TokenError."""
        # Arrange
        mock_response = MagicMock()
        mock_response.status_code = 502
        mock_response.json.side_effect = ValueError("Not valid JSON")
        self.token_manager._http_client.post.return_value = mock_response

        # Act & Assert
        with pytest.raises(TokenError, match="502"):
            await self.token_manager.request_client_credentials_token(
                self.token_request
            )

    async def test_requests_through_real_http_client(self):
        """Test a request sent through an httpx client with a mock server."""

        # Arrange
        def token_endpoint(request: httpx.Request) -> httpx.Response:
            assert request.headers["Content-Type"] == (
                "application/x-www-form-urlencoded"
            )
            assert b"grant_type=client_credentials" in request.content
            return httpx.Response(200, json={"access_token": "served-token"})

        token_manager = OAuth2TokenManager(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint))
        )

        # Act
        token_response = await token_manager.request_client_credentials_token(
            self.token_request
        )
        await token_manager.close()

        # Assert
        assert token_response.access_token == "served-token"


class TestClientOwnership:
    """Test which HTTP clients close() shuts down."""

    async def test_close_leaves_caller_client_open(self):
        # Arrange
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        token_manager = OAuth2TokenManager(http_client=http_client)

        # Act
        await token_manager.close()

        # Assert
        assert not http_client.is_closed
        await http_client.aclose()

    async def test_close_shuts_down_internal_client(self):
        # Arrange
        token_manager = OAuth2TokenManager(timeout=5.0)

        # Act
        await token_manager.close()

        # Assert
        assert token_manager._http_client.is_closed
