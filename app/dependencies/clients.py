"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Factories build from the request-time settings so that missing provisioning
surfaces as ``ConfigurationError`` on the request that needs it.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from app.clients import LinkedAccountStore, MarketplaceOAuthClient
from app.core.config import AppSettings
from app.dependencies.config import get_app_settings, get_caller_authenticator
from app.services import (
    AccountLinker,
    AccountLinkFlow,
    CallerAuthenticator,
    TokenCipherService,
)


@lru_cache()
def _store_for_path(database_path: str) -> LinkedAccountStore:
    return LinkedAccountStore(database_path)


def get_linked_account_store(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> LinkedAccountStore:
    """Provide the shared linked-account store."""
    return _store_for_path(settings.storage.database_path)


def get_marketplace_oauth_client(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> MarketplaceOAuthClient:
    """Create a marketplace OAuth client."""
    return MarketplaceOAuthClient(settings.marketplace)


def get_token_cipher_service(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> TokenCipherService:
    """Provide symmetric encryption for token storage."""
    secret = (
        settings.security.token_encryption_secret
        or settings.marketplace.client_secret
    )
    return TokenCipherService(secret=secret)


def get_account_linker(
    store: Annotated[LinkedAccountStore, Depends(get_linked_account_store)],
    token_cipher: Annotated[TokenCipherService, Depends(get_token_cipher_service)],
) -> AccountLinker:
    return AccountLinker(store, token_cipher)


def get_account_link_flow(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    oauth_client: Annotated[MarketplaceOAuthClient, Depends(get_marketplace_oauth_client)],
    linker: Annotated[AccountLinker, Depends(get_account_linker)],
    authenticator: Annotated[CallerAuthenticator, Depends(get_caller_authenticator)],
) -> AccountLinkFlow:
    """Build the linking flow from its collaborators."""
    return AccountLinkFlow(
        oauth_client=oauth_client,
        linker=linker,
        authenticator=authenticator,
        oauth_settings=settings.oauth,
        dashboard_url=settings.dashboard_url,
    )


__all__ = [
    "get_account_link_flow",
    "get_account_linker",
    "get_linked_account_store",
    "get_marketplace_oauth_client",
    "get_token_cipher_service",
]
