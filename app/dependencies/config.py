"""
FastAPI dependencies for configuration and caller identity.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header

from app.core.config import AppSettings, get_settings
from app.services.caller_auth import CallerAuthenticator


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_caller_authenticator(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> CallerAuthenticator:
    return CallerAuthenticator(settings.auth)


def get_current_user_id(
    authenticator: Annotated[CallerAuthenticator, Depends(get_caller_authenticator)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> str:
    """Authenticate the request's bearer token and return the product user id."""
    return authenticator.authenticate(authorization)


SettingsDependency = Depends(get_app_settings)
CurrentUserDependency = Depends(get_current_user_id)

__all__ = [
    "CurrentUserDependency",
    "SettingsDependency",
    "get_app_settings",
    "get_caller_authenticator",
    "get_current_user_id",
]
