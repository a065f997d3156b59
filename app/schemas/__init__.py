"""Public schema exports."""

from .auth import (
    AuthorizationUrlResponse,
    ErrorResponse,
    ExchangeResponse,
    LinkedAccountResponse,
    OAuthCallbackPayload,
)

__all__ = [
    "AuthorizationUrlResponse",
    "ErrorResponse",
    "ExchangeResponse",
    "LinkedAccountResponse",
    "OAuthCallbackPayload",
]
