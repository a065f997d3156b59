"""
Marketplace account-linking flow.

``begin_link`` issues the authorization URL. The two callback adapters,
``handle_exchange`` (single-page app, authenticated caller) and
``handle_redirect_callback`` (full-page browser redirect), differ only in how
they establish the owning product user; both finish through ``complete_link``.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from app.clients.marketplace_auth import MarketplaceOAuthClient
from app.core.config import OAuthSettings
from app.core.exceptions import (
    AccountLinkError,
    AuthenticationError,
    ConfigurationError,
    InvalidStateError,
    MissingCodeError,
    MissingInputError,
    UpstreamError,
)
from app.models.linked_account import LinkedAccount, LinkStage
from app.services.account_linker import AccountLinker
from app.services.authorization_state import (
    decode_state,
    encode_state,
    issue_state,
    validate_state,
)
from app.services.caller_auth import CallerAuthenticator

logger = logging.getLogger(__name__)


class AccountLinkFlow:
    """Coordinates state issuance, code exchange, profile fetch and persistence."""

    def __init__(
        self,
        *,
        oauth_client: MarketplaceOAuthClient,
        linker: AccountLinker,
        authenticator: CallerAuthenticator,
        oauth_settings: OAuthSettings,
        dashboard_url: str,
    ) -> None:
        self._oauth = oauth_client
        self._linker = linker
        self._authenticator = authenticator
        self._oauth_settings = oauth_settings
        self._dashboard_url = dashboard_url

    def begin_link(self, owner_user_id: str, *, issued_at_ms: int | None = None) -> str:
        """Return the marketplace consent URL carrying a fresh state for the owner."""
        if not owner_user_id:
            raise AuthenticationError("User is not authenticated.")
        state = issue_state(
            owner_user_id,
            ttl_seconds=self._oauth_settings.state_ttl_seconds,
            issued_at_ms=issued_at_ms,
        )
        try:
            encoded = encode_state(state.owner_user_id, state.nonce, state.expires_at_ms)
        except ValueError as exc:
            raise ConfigurationError(
                "User id cannot be encoded into the OAuth state."
            ) from exc
        authorization_url = self._oauth.build_authorization_url(encoded)
        logger.info(
            "Issued authorization request for owner %s (stage %s)",
            owner_user_id,
            LinkStage.PENDING_CODE.value,
        )
        return authorization_url

    async def complete_link(self, owner_user_id: str, code: str) -> LinkedAccount:
        """Exchange the code, fetch the seller profile and upsert the account."""
        logger.info(
            "Link %s for owner %s (code %s...)",
            LinkStage.CODE_RECEIVED.value,
            owner_user_id,
            code[:6],
        )
        try:
            credential = await self._oauth.exchange_authorization_code(code)
            logger.info(
                "Link %s for owner %s, marketplace user %s",
                LinkStage.TOKEN_EXCHANGED.value,
                owner_user_id,
                credential.marketplace_user_id,
            )
            profile = await self._oauth.fetch_profile(
                credential.access_token, credential.marketplace_user_id
            )
            logger.info(
                "Link %s for owner %s, nickname %s",
                LinkStage.PROFILE_FETCHED.value,
                owner_user_id,
                profile.nickname,
            )
            account = self._linker.link(owner_user_id, credential, profile)
        except AccountLinkError as exc:
            logger.warning(
                "Link %s for owner %s: %s", exc.stage.value, owner_user_id, exc.message
            )
            raise

        logger.info(
            "Link %s for owner %s, marketplace user %s",
            LinkStage.LINKED.value,
            owner_user_id,
            account.marketplace_user_id,
        )
        return account

    async def handle_exchange(
        self,
        owner_user_id: str | None,
        code: str | None,
        state: str | None,
        *,
        current_ms: int | None = None,
    ) -> LinkedAccount:
        """Finish the flow for an authenticated caller; ownership is the caller's identity."""
        if not owner_user_id:
            raise AuthenticationError("User is not authenticated.")
        if not code or not state:
            raise MissingInputError("Authorization code or state was not provided.")

        decode_state(state, owner_user_id, current_ms=current_ms)
        return await self.complete_link(owner_user_id, code)

    async def handle_redirect_callback(
        self,
        code: str | None,
        state: str | None,
        *,
        authorization: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
        current_ms: int | None = None,
    ) -> str:
        """
        Finish the flow from a browser redirect and return the location to send it to.

        Ownership comes from the state. When the request also carries a bearer
        credential, that identity must match the state owner.
        """
        try:
            if error:
                raise UpstreamError(
                    f"Marketplace authorization was not granted: {error_description or error}"
                )
            if not code:
                raise MissingCodeError("Authorization code was not provided.")

            parsed = validate_state(state or "", allow_legacy=True, current_ms=current_ms)
            if authorization:
                caller_user_id = self._authenticator.authenticate(authorization)
                if caller_user_id != parsed.owner_user_id:
                    raise InvalidStateError(
                        "State does not belong to the authenticated user."
                    )

            account = await self.complete_link(parsed.owner_user_id, code)
        except AccountLinkError as exc:
            logger.warning("Redirect callback failed (%s): %s", exc.stage.value, exc.message)
            return self.error_location(exc.message)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected failure in redirect callback")
            return self.error_location("Unexpected error while linking the account.")

        logger.info("Redirect callback linked %s", account.nickname)
        return self.success_location()

    def success_location(self) -> str:
        return f"{self._dashboard_url}{self._query_separator()}ml_connected=true"

    def error_location(self, message: str) -> str:
        return f"{self._dashboard_url}{self._query_separator()}ml_error={quote(message, safe='')}"

    def _query_separator(self) -> str:
        return "&" if "?" in self._dashboard_url else "?"


__all__ = ["AccountLinkFlow"]
