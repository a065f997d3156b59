"""
Marketplace OAuth utilities.

Builds the consent URL, exchanges authorization codes for tokens and reads the
seller profile behind a freshly issued token. Authorization codes are
single-use, so nothing here retries.
"""

from __future__ import annotations

import logging
from typing import Any, Dict
from urllib.parse import urlencode

import httpx

from app.core.config import MarketplaceSettings
from app.core.exceptions import (
    MalformedUpstreamResponse,
    UpstreamProfileFetchError,
    UpstreamTokenExchangeError,
)
from app.models.linked_account import ExchangedCredential, MarketplaceProfile

logger = logging.getLogger(__name__)

# Lifetime the marketplace grants when a token response omits ``expires_in``.
DEFAULT_EXPIRES_IN_SECONDS = 21600


def build_authorization_url(auth_url: str, client_id: str, redirect_uri: str, state: str) -> str:
    """Construct the marketplace consent URL."""
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "state": state,
    }
    return f"{auth_url}?{urlencode(params)}"


class MarketplaceOAuthClient:
    """Talk to the marketplace authorization and user APIs."""

    TOKEN_PATH = "/oauth/token"
    USER_PATH = "/users/{user_id}"

    def __init__(
        self,
        settings: MarketplaceSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.api_base_url,
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )

    def build_authorization_url(self, state: str) -> str:
        client_id, redirect_uri = self._settings.require_authorization_config()
        return build_authorization_url(
            self._settings.auth_url, client_id, redirect_uri, state
        )

    async def exchange_authorization_code(self, code: str) -> ExchangedCredential:
        """
        Exchange an authorization code for tokens.

        A non-success status carries the upstream body verbatim; a success
        without ``access_token``, ``refresh_token`` or ``user_id`` is malformed.
        """
        client_id, client_secret, redirect_uri = self._settings.require_exchange_config()
        payload = {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }

        try:
            async with self._http_client() as client:
                response = await client.post(
                    self.TOKEN_PATH,
                    data=payload,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Token exchange request failed: %s", exc.__class__.__name__)
            raise UpstreamTokenExchangeError(
                f"Could not reach the marketplace token endpoint: {exc.__class__.__name__}"
            ) from exc

        if not response.is_success:
            logger.warning(
                "Token exchange rejected with HTTP %s: %s",
                response.status_code,
                response.text[:200],
            )
            raise UpstreamTokenExchangeError(
                f"Marketplace token exchange failed: {response.text}",
                upstream_body=response.text,
            )

        token_payload = self._json_object(response, "token exchange")
        access_token = token_payload.get("access_token")
        refresh_token = token_payload.get("refresh_token")
        user_id = token_payload.get("user_id")
        if not access_token or not refresh_token or not user_id:
            raise MalformedUpstreamResponse(
                "Incomplete token payload returned from the marketplace."
            )

        expires_in = token_payload.get("expires_in")
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN_SECONDS
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError):
            raise MalformedUpstreamResponse(
                "Marketplace returned a non-numeric expires_in."
            ) from None

        return ExchangedCredential(
            access_token=str(access_token),
            refresh_token=str(refresh_token),
            expires_in_seconds=expires_in,
            marketplace_user_id=str(user_id),
        )

    async def fetch_profile(self, access_token: str, marketplace_user_id: str) -> MarketplaceProfile:
        """Read the seller profile using the freshly obtained bearer token."""
        try:
            async with self._http_client() as client:
                response = await client.get(
                    self.USER_PATH.format(user_id=marketplace_user_id),
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Profile request failed: %s", exc.__class__.__name__)
            raise UpstreamProfileFetchError(
                f"Could not reach the marketplace user endpoint: {exc.__class__.__name__}"
            ) from exc

        if not response.is_success:
            logger.warning(
                "Profile fetch for %s rejected with HTTP %s",
                marketplace_user_id,
                response.status_code,
            )
            raise UpstreamProfileFetchError(
                f"Marketplace profile fetch failed: {response.text}",
                upstream_body=response.text,
            )

        profile = self._json_object(response, "profile fetch")
        site_id = profile.get("site_id")
        nickname = profile.get("nickname")
        if not site_id or not nickname:
            raise MalformedUpstreamResponse(
                "Marketplace profile is missing site_id or nickname."
            )
        return MarketplaceProfile(
            marketplace_user_id=marketplace_user_id,
            site_id=str(site_id),
            nickname=str(nickname),
        )

    @staticmethod
    def _json_object(response: httpx.Response, operation: str) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            raise MalformedUpstreamResponse(
                f"Marketplace {operation} returned a non-JSON body."
            ) from None
        if not isinstance(payload, dict):
            raise MalformedUpstreamResponse(
                f"Marketplace {operation} returned an unexpected payload."
            )
        return payload


__all__ = [
    "DEFAULT_EXPIRES_IN_SECONDS",
    "MarketplaceOAuthClient",
    "build_authorization_url",
]
