"""Service layer exports."""

from .account_link_flow import AccountLinkFlow
from .account_linker import AccountLinker
from .caller_auth import CallerAuthenticator
from .token_cipher import TokenCipherService

__all__ = [
    "AccountLinkFlow",
    "AccountLinker",
    "CallerAuthenticator",
    "TokenCipherService",
]
