"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_account_link_flow,
    get_account_linker,
    get_linked_account_store,
    get_marketplace_oauth_client,
    get_token_cipher_service,
)
from .config import (
    CurrentUserDependency,
    SettingsDependency,
    get_app_settings,
    get_caller_authenticator,
    get_current_user_id,
)

__all__ = [
    "CurrentUserDependency",
    "SettingsDependency",
    "get_account_link_flow",
    "get_account_linker",
    "get_app_settings",
    "get_caller_authenticator",
    "get_current_user_id",
    "get_linked_account_store",
    "get_marketplace_oauth_client",
    "get_token_cipher_service",
]
