"""Exception hierarchy for OAuth 2.0 bearer authentication errors.

Protocol failures raised while obtaining or refreshing tokens. Invalid
arguments passed by the caller raise the built-in ValueError instead.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class TokenError(OAuth2Error):
    """Raised when token endpoint operations fail."""

    pass


class TokenExchangeError(TokenError):
    """Raised when a grant (authorization code or client credentials) is rejected."""

    pass


class TokenRefreshError(TokenError):
    """Raised when an access token cannot be refreshed."""

    pass


class AuthorizationError(OAuth2Error):
    """Raised when user authorization fails."""

    pass


class AuthorizationCallbackError(OAuth2Error):
    """Raised when authorization server callback data is malformed or invalid.

    This indicates the authorization server sent an invalid callback URL,
    not that our callback handling code failed.
    """

    pass


class StateValidationError(AuthorizationCallbackError):
    """Raised when OAuth state parameter validation fails.

    This indicates either a missing state parameter or a state mismatch,
    which could indicate a CSRF attack or authorization server issue.
    """

    pass
