try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.clients.sqlite_store import LinkedAccountStore
from app.dependencies import get_linked_account_store
from app.main import app
from app.services.authorization_state import encode_state, now_ms


@pytest.fixture()
def route_overrides(settings, oauth_client, store, cipher):
    from app import dependencies

    overrides = {
        dependencies.get_app_settings: lambda: settings,
        dependencies.get_marketplace_oauth_client: lambda: oauth_client,
        dependencies.get_linked_account_store: lambda: store,
        dependencies.get_token_cipher_service: lambda: cipher,
    }
    app.dependency_overrides.update(overrides)

    yield settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


def _fresh_state(owner: str) -> str:
    return encode_state(owner, "nonce-1", now_ms() + 600_000)


@pytest.mark.anyio
async def test_healthcheck() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_begin_link_returns_authorization_url(route_overrides, bearer):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/auth", headers={"Authorization": bearer("user-1")}
        )

    assert response.status_code == 200
    url = response.json()["authorization_url"]
    state = parse_qs(urlparse(url).query)["state"][0]
    assert state.startswith("user-1|")


@pytest.mark.anyio
async def test_begin_link_requires_bearer(route_overrides):
    async with _client() as client:
        response = await client.post("/api/marketplace/auth")

    assert response.status_code == 401
    assert "error" in response.json()


@pytest.mark.anyio
async def test_begin_link_reports_missing_configuration(route_overrides, bearer):
    route_overrides.marketplace.client_id = None

    async with _client() as client:
        response = await client.post(
            "/api/marketplace/auth", headers={"Authorization": bearer("user-1")}
        )

    assert response.status_code == 500
    assert response.json() == {
        "error": "Marketplace client id and redirect URI are not configured."
    }


@pytest.mark.anyio
async def test_exchange_links_account_and_returns_nickname(route_overrides, bearer, store):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/exchange",
            json={"code": "TG-abc", "state": _fresh_state("user-1")},
            headers={"Authorization": bearer("user-1")},
        )

    assert response.status_code == 200
    assert response.json() == {"nickname": "LOJA9"}
    assert store.count_accounts() == 1


@pytest.mark.anyio
async def test_exchange_rejects_foreign_state(route_overrides, bearer, fake_marketplace):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/exchange",
            json={"code": "TG-abc", "state": _fresh_state("user-1")},
            headers={"Authorization": bearer("user-2")},
        )

    assert response.status_code == 400
    assert response.json()["error"] == "State does not belong to the authenticated user."
    assert fake_marketplace.requests == []


@pytest.mark.anyio
async def test_exchange_requires_bearer(route_overrides):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/exchange",
            json={"code": "TG-abc", "state": _fresh_state("user-1")},
        )

    assert response.status_code == 401


@pytest.mark.anyio
async def test_exchange_rejects_missing_fields(route_overrides, bearer):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/exchange",
            json={"code": "TG-abc"},
            headers={"Authorization": bearer("user-1")},
        )

    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.anyio
async def test_exchange_surfaces_upstream_rejection(route_overrides, bearer, fake_marketplace, store):
    fake_marketplace.token_status = 400
    fake_marketplace.token_body = '{"error":"invalid_grant"}'

    async with _client() as client:
        response = await client.post(
            "/api/marketplace/exchange",
            json={"code": "TG-used", "state": _fresh_state("user-1")},
            headers={"Authorization": bearer("user-1")},
        )

    assert response.status_code == 400
    assert "invalid_grant" in response.json()["error"]
    assert store.count_accounts() == 0


@pytest.mark.anyio
async def test_redirect_callback_redirects_to_dashboard(route_overrides, store):
    async with _client() as client:
        response = await client.get(
            "/api/marketplace/callback",
            params={"code": "TG-abc", "state": _fresh_state("user-1")},
        )

    assert response.status_code == 302
    assert response.headers["location"] == f"{route_overrides.dashboard_url}?ml_connected=true"
    assert store.count_accounts() == 1


@pytest.mark.anyio
async def test_redirect_callback_accepts_post_body(route_overrides, store):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/callback",
            json={"code": "TG-abc", "state": _fresh_state("user-1")},
        )

    assert response.status_code == 302
    assert response.headers["location"].endswith("ml_connected=true")
    assert store.count_accounts() == 1


@pytest.mark.anyio
async def test_redirect_callback_reports_errors_in_location(route_overrides, fake_marketplace):
    async with _client() as client:
        response = await client.get(
            "/api/marketplace/callback",
            params={"error": "access_denied", "error_description": "denied"},
        )

    assert response.status_code == 302
    query = parse_qs(urlparse(response.headers["location"]).query)
    assert "denied" in query["ml_error"][0]
    assert fake_marketplace.requests == []


@pytest.mark.anyio
async def test_list_accounts_omits_tokens(route_overrides, bearer):
    async with _client() as client:
        await client.post(
            "/api/marketplace/exchange",
            json={"code": "TG-abc", "state": _fresh_state("user-1")},
            headers={"Authorization": bearer("user-1")},
        )
        response = await client.get(
            "/api/marketplace/accounts", headers={"Authorization": bearer("user-1")}
        )
        other = await client.get(
            "/api/marketplace/accounts", headers={"Authorization": bearer("user-2")}
        )

    assert response.status_code == 200
    accounts = response.json()
    assert len(accounts) == 1
    assert accounts[0]["nickname"] == "LOJA9"
    assert accounts[0]["site_id"] == "MLB"
    assert "access_token" not in accounts[0]
    assert other.json() == []


@pytest.mark.anyio
async def test_exchange_rejects_non_json_body(route_overrides, bearer):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/exchange",
            content=b"code=TG-abc",
            headers={"Authorization": bearer("user-1"), "Content-Type": "application/json"},
        )

    assert response.status_code == 400
    assert response.json() == {"error": "Request body must be a JSON object with code and state."}


@pytest.mark.anyio
async def test_begin_link_rejects_user_id_that_cannot_be_encoded(route_overrides, bearer):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/auth", headers={"Authorization": bearer("auth0|abc")}
        )

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"error": "User id cannot be encoded into the OAuth state."}


@pytest.fixture()
def unwritable_store(route_overrides, tmp_path):
    db_path = tmp_path / "linked.db"
    db_path.mkdir()
    app.dependency_overrides[get_linked_account_store] = lambda: LinkedAccountStore(str(db_path))
    return route_overrides


@pytest.mark.anyio
async def test_exchange_reports_storage_failure(unwritable_store, bearer):
    async with _client() as client:
        response = await client.post(
            "/api/marketplace/exchange",
            json={"code": "TG-abc", "state": _fresh_state("user-1")},
            headers={"Authorization": bearer("user-1")},
        )

    assert response.status_code == 500
    assert response.json() == {"error": "Could not initialize storage for linked account."}


@pytest.mark.anyio
async def test_redirect_callback_reports_storage_failure(unwritable_store):
    async with _client() as client:
        response = await client.get(
            "/api/marketplace/callback",
            params={"code": "TG-abc", "state": _fresh_state("user-1")},
        )

    assert response.status_code == 302
    query = parse_qs(urlparse(response.headers["location"]).query)
    assert query["ml_error"] == ["Could not initialize storage for linked account."]
