"""Schemas related to the marketplace linking endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Body sent to complete the OAuth exchange or a POSTed redirect callback."""

    code: Optional[str] = Field(
        None, description="Authorization code returned by the marketplace."
    )
    state: Optional[str] = Field(
        None, description="Opaque state token issued when starting OAuth."
    )


class AuthorizationUrlResponse(BaseModel):
    authorization_url: str


class ExchangeResponse(BaseModel):
    """Only non-sensitive profile data is echoed back to the caller."""

    nickname: str


class LinkedAccountResponse(BaseModel):
    marketplace_user_id: str
    nickname: str
    site_id: str
    expires_at: datetime
    updated_at: datetime


class ErrorResponse(BaseModel):
    error: str


__all__ = [
    "AuthorizationUrlResponse",
    "ErrorResponse",
    "ExchangeResponse",
    "LinkedAccountResponse",
    "OAuthCallbackPayload",
]
