"""Authorization server endpoint description."""

from __future__ import annotations

from dataclasses import dataclass

AUTHORIZATION_PATH = "/oauth/v2/authorize"
TOKEN_PATH = "/oauth/v2/token"


@dataclass(frozen=True)
class ServerDescription:
    """Authorization and token endpoints of an authorization server."""

    authorization_endpoint: str
    token_endpoint: str


def build_server_description(base_uri: str) -> ServerDescription:
    """Derive the server endpoints from an authorization base URI.

    A single trailing slash is removed before the fixed endpoint paths
    are appended, so ``https://auth.example.com`` and
    ``https://auth.example.com/`` describe the same server.

    Args:
        base_uri: Base URI of the authorization server

    Returns:
        ServerDescription with absolute endpoint URIs

    Raises:
        ValueError: If base_uri is empty
    """
    if not base_uri:
        raise ValueError("auth_base_uri is required")

    if base_uri.endswith("/"):
        base_uri = base_uri[:-1]

    return ServerDescription(
        authorization_endpoint=f"{base_uri}{AUTHORIZATION_PATH}",
        token_endpoint=f"{base_uri}{TOKEN_PATH}",
    )
