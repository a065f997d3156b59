"""Error taxonomy for the marketplace account-linking flow."""

from http import HTTPStatus

from app.models.linked_account import LinkStage


class AccountLinkError(Exception):
    """Base exception for every typed failure of the linking flow."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    stage: LinkStage = LinkStage.FAILED_PERSISTENCE

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationError(AccountLinkError):
    """Caller is not authenticated, or the presented credential is invalid or expired."""

    status_code = HTTPStatus.UNAUTHORIZED
    stage = LinkStage.FAILED_AUTH


class ConfigurationError(AccountLinkError):
    """Required provisioning (client id, secret, redirect URI, ...) is missing."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    stage = LinkStage.FAILED_CONFIGURATION


class MissingInputError(AccountLinkError):
    """Request lacks a required field such as ``code`` or ``state``."""

    status_code = HTTPStatus.BAD_REQUEST
    stage = LinkStage.FAILED_STATE


class MissingCodeError(MissingInputError):
    """Marketplace redirected back without an authorization code."""


class InvalidStateError(AccountLinkError):
    """State is malformed, expired, or bound to a different product user."""

    status_code = HTTPStatus.BAD_REQUEST
    stage = LinkStage.FAILED_STATE


class UpstreamError(AccountLinkError):
    """Base class for marketplace-side failures."""

    status_code = HTTPStatus.BAD_REQUEST
    stage = LinkStage.FAILED_UPSTREAM

    def __init__(self, message: str, *, upstream_body: str | None = None) -> None:
        super().__init__(message)
        self.upstream_body = upstream_body


class UpstreamTokenExchangeError(UpstreamError):
    """Token endpoint rejected the code or could not be reached."""


class UpstreamProfileFetchError(UpstreamError):
    """User-profile endpoint failed for a freshly issued token."""


class MalformedUpstreamResponse(UpstreamError):
    """Marketplace answered successfully but omitted required fields."""


class PersistenceError(AccountLinkError):
    """Storage failed while saving or reading linked accounts."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    stage = LinkStage.FAILED_PERSISTENCE


__all__ = [
    "AccountLinkError",
    "AuthenticationError",
    "ConfigurationError",
    "InvalidStateError",
    "MalformedUpstreamResponse",
    "MissingCodeError",
    "MissingInputError",
    "PersistenceError",
    "UpstreamError",
    "UpstreamProfileFetchError",
    "UpstreamTokenExchangeError",
]
