"""Pydantic schemas for admin authentication and bootstrap."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AdminLoginRequest(BaseModel):
    """Admin login payload.

    Fields are optional here so missing values reach the service, which
    answers them with the documented 400 instead of a schema error.
    """

    username: str | None = Field(default=None, description="Admin username (case-insensitive).")
    password: str | None = Field(default=None, description="Account password.")


class AdminLoginResponse(BaseModel):
    """Session issued by the credential service."""

    session: dict[str, Any] = Field(
        ..., description="Token payload: access_token, refresh_token, expires_in, token_type."
    )
    user: dict[str, Any] = Field(default_factory=dict, description="Authenticated user.")


class AdminSetupRequest(BaseModel):
    """Bootstrap payload for the first admin account."""

    model_config = ConfigDict(populate_by_name=True)

    setup_key: str | None = Field(default=None, alias="setupKey")
    username: str | None = None
    email: str | None = None
    password: str | None = None


class AdminSetupResponse(BaseModel):
    """Bootstrap outcome."""

    message: str
    username: str | None = None
    created: bool = False
    exists: bool = False
