"""Expose constructed client wrappers."""

from .marketplace_auth import MarketplaceOAuthClient
from .sqlite_store import LinkedAccountStore

__all__ = [
    "LinkedAccountStore",
    "MarketplaceOAuthClient",
]
