"""
Domain models for marketplace account linking.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LinkStage(str, Enum):
    """Stages of a single account-link attempt, including terminal failures."""

    PENDING_CODE = "pending_code"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    PROFILE_FETCHED = "profile_fetched"
    LINKED = "linked"
    FAILED_AUTH = "failed_auth"
    FAILED_CONFIGURATION = "failed_configuration"
    FAILED_STATE = "failed_state"
    FAILED_UPSTREAM = "failed_upstream"
    FAILED_PERSISTENCE = "failed_persistence"


class AuthorizationState(BaseModel):
    """Self-describing anti-CSRF value round-tripped through the marketplace."""

    owner_user_id: str
    nonce: str
    expires_at_ms: int


class ExchangedCredential(BaseModel):
    """Tokens returned by the marketplace for a single authorization code."""

    access_token: str = Field(..., repr=False)
    refresh_token: str = Field(..., repr=False)
    expires_in_seconds: int
    marketplace_user_id: str


class MarketplaceProfile(BaseModel):
    """Seller profile fields needed to label a linked account."""

    marketplace_user_id: str
    site_id: str
    nickname: str


class LinkedAccount(BaseModel):
    """A marketplace seller account durably bound to a product user."""

    owner_user_id: str
    marketplace_user_id: str
    access_token: str = Field(..., repr=False)
    refresh_token: str = Field(..., repr=False)
    expires_at: datetime
    site_id: str
    nickname: str
    updated_at: datetime
    created_at: Optional[datetime] = None


class LinkedAccountSummary(BaseModel):
    """Non-sensitive view of a linked account."""

    marketplace_user_id: str
    nickname: str
    site_id: str
    expires_at: datetime
    updated_at: datetime


__all__ = [
    "AuthorizationState",
    "ExchangedCredential",
    "LinkStage",
    "LinkedAccount",
    "LinkedAccountSummary",
    "MarketplaceProfile",
]
