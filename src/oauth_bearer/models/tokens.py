"""Token state and token endpoint models for OAuth 2.0.

Contains the mutable authorization state shared between the caller and the
bearer transport, plus token request and response models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationState(BaseModel):
    """Mutable authorization state for a client session.

    Updated in place when the access token is refreshed, so every holder of
    a reference sees the new token. Serialise with ``model_dump_json()`` and
    restore with ``model_validate_json()`` to reuse a session across runs.
    """

    model_config = ConfigDict(validate_assignment=True)

    access_token: str | None = None
    refresh_token: str | None = None
    access_token_expiration_utc: datetime | None = None
    access_token_issue_date_utc: datetime | None = None
    callback: str | None = None  # Redirect URI used for the authorization code
    scope: list[str] = Field(default_factory=list)

    @field_validator("access_token_expiration_utc", "access_token_issue_date_utc")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the access token expiration has passed.

        A state without an expiration never expires.
        """
        if self.access_token_expiration_utc is None:
            return False

        now = now or utc_now()
        return self.access_token_expiration_utc < now

    def can_refresh(self) -> bool:
        """Check if token can be refreshed."""
        return bool(self.refresh_token)

    def update_from_response(self, token_response: TokenResponse) -> None:
        """Update state in place from a successful token response."""
        issued = utc_now()

        self.access_token = token_response.access_token
        self.access_token_issue_date_utc = issued

        # Servers may omit the refresh token on refresh; keep the old one
        if token_response.refresh_token:
            self.refresh_token = token_response.refresh_token

        if token_response.expires_in is not None:
            self.access_token_expiration_utc = issued + timedelta(
                seconds=token_response.expires_in
            )
        else:
            self.access_token_expiration_utc = None

        if token_response.scope:
            self.scope = token_response.scope.split()


class TokenResponse(BaseModel):
    """OAuth 2.0 token response (RFC 6749 Section 5).

    Represents the response from a token endpoint, including both
    successful responses (Section 5.1) and error responses (Section 5.2).
    """

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return self.error is None and self.access_token is not None

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return self.error is not None

    def describe_error(self) -> str:
        if self.error_description:
            return f"{self.error}: {self.error_description}"
        return self.error or "unknown_error"


@dataclass(frozen=True)
class AuthorizationCodeRequest:
    """Authorization code grant request (RFC 6749 Section 4.1.3).

    The client secret is sent as a form parameter alongside the client id.
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    client_secret: str | None = None

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).

        Returns:
            Dictionary suitable for httpx data parameter
        """
        data = {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret

        return data


@dataclass(frozen=True)
class ClientCredentialsRequest:
    """Client credentials grant request (RFC 6749 Section 4.4)."""

    token_endpoint: str
    client_id: str
    client_secret: str | None = None
    scope: tuple[str, ...] = ()

    grant_type: str = "client_credentials"

    def to_form_data(self) -> dict[str, str]:
        data = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret
        if self.scope:
            data["scope"] = " ".join(self.scope)

        return data


@dataclass(frozen=True)
class RefreshTokenRequest:
    """OAuth 2.0 refresh token request parameters (RFC 6749 Section 6).

    Immutable request parameters for refreshing access tokens. Leaving
    ``scope`` empty asks for the originally granted scope.
    """

    token_endpoint: str
    refresh_token: str
    client_id: str
    client_secret: str | None = None
    scope: tuple[str, ...] = ()

    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        data = {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret
        if self.scope:
            data["scope"] = " ".join(self.scope)

        return data
