"""Handler configuration model."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator


class HandlerConfig(BaseModel):
    """Settings needed to build a bearer token handler.

    Mirrors the arguments of ``create_handler`` so that configuration can be
    loaded and validated in one place before any network call is made.
    """

    auth_base_uri: str
    client_id: str
    client_secret: str
    scopes: list[str] = Field(default_factory=list)

    # Authorization code flow
    require_user_token: bool = False
    redirect_uri: str | None = None

    timeout: float = 30.0

    @field_validator("auth_base_uri")
    @classmethod
    def validate_auth_base_uri(cls, v: str) -> str:
        """Validate the base URI is an absolute HTTP(S) URI."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"auth_base_uri must be an absolute HTTP(S) URI: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_user_token_settings(self) -> HandlerConfig:
        if self.require_user_token and not self.redirect_uri:
            raise ValueError("redirect_uri is required when require_user_token is true")
        return self
