"""Security utilities for OAuth 2.0 flows.

Provides generation and validation of the state parameter used for CSRF
protection in the authorization code flow.
"""

from __future__ import annotations

import secrets
import string

from oauth_bearer.models.errors import StateValidationError


def generate_state() -> str:
    """Generate cryptographically secure state parameter.

    Returns:
        Cryptographically secure random state string (32 characters)
    """
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(32))


def validate_state(expected: str, actual: str) -> None:
    """Validate state parameter matches expected value.

    Raises:
        StateValidationError: If state parameters don't match
    """
    if not secrets.compare_digest(expected, actual):
        raise StateValidationError("State parameter mismatch - possible CSRF attack")
