"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
import time
from typing import Any

import httpx
import pytest
from jose import jwt

from app.clients import LinkedAccountStore, MarketplaceOAuthClient
from app.core.config import AppSettings, get_settings
from app.services import AccountLinker, AccountLinkFlow, CallerAuthenticator, TokenCipherService


class FakeMarketplace:
    """Answers the marketplace token and user endpoints from canned payloads."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body: Any = {
            "access_token": "t1",
            "refresh_token": "r1",
            "expires_in": 21600,
            "user_id": 9,
        }
        self.profile_status = 200
        self.profile_body: Any = {"id": 9, "site_id": "MLB", "nickname": "LOJA9"}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            return self._respond(self.token_status, self.token_body)
        if request.url.path.startswith("/users/"):
            return self._respond(self.profile_status, self.profile_body)
        return httpx.Response(404, json={"message": "not_found"})

    @staticmethod
    def _respond(status: int, body: Any) -> httpx.Response:
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def make_bearer(
    user_id: str,
    *,
    secret: str = "test-jwt-secret",
    audience: str = "authenticated",
    expires_in: int = 3600,
) -> str:
    claims = {"sub": user_id, "aud": audience, "exp": int(time.time()) + expires_in}
    return f"Bearer {jwt.encode(claims, secret, algorithm='HS256')}"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture()
def settings() -> AppSettings:
    return copy.deepcopy(get_settings())


@pytest.fixture()
def fake_marketplace() -> FakeMarketplace:
    return FakeMarketplace()


@pytest.fixture()
def oauth_client(settings: AppSettings, fake_marketplace: FakeMarketplace) -> MarketplaceOAuthClient:
    return MarketplaceOAuthClient(settings.marketplace, transport=fake_marketplace.transport())


@pytest.fixture()
def store(tmp_path) -> LinkedAccountStore:
    return LinkedAccountStore(str(tmp_path / "linked_accounts.db"))


@pytest.fixture()
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="test-secret")


@pytest.fixture()
def linker(store: LinkedAccountStore, cipher: TokenCipherService) -> AccountLinker:
    return AccountLinker(store, cipher)


@pytest.fixture()
def flow(
    settings: AppSettings,
    oauth_client: MarketplaceOAuthClient,
    linker: AccountLinker,
) -> AccountLinkFlow:
    return AccountLinkFlow(
        oauth_client=oauth_client,
        linker=linker,
        authenticator=CallerAuthenticator(settings.auth),
        oauth_settings=settings.oauth,
        dashboard_url=settings.dashboard_url,
    )


@pytest.fixture()
def bearer():
    """Factory for ``Authorization`` header values signed with the test secret."""
    return make_bearer
