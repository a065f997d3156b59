"""
Persist exchanged marketplace credentials against a product user.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from app.clients.sqlite_store import LinkedAccountStore
from app.models.linked_account import (
    ExchangedCredential,
    LinkedAccount,
    LinkedAccountSummary,
    MarketplaceProfile,
)
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AccountLinker:
    """Upserts one linked account per (owner, marketplace user) pair."""

    def __init__(self, store: LinkedAccountStore, token_cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = token_cipher

    def link(
        self,
        owner_user_id: str,
        credential: ExchangedCredential,
        profile: MarketplaceProfile,
        *,
        now: datetime | None = None,
    ) -> LinkedAccount:
        """Create or overwrite the account row; concurrent callers resolve last-writer-wins."""
        now = now or datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=credential.expires_in_seconds)

        record = {
            "owner_user_id": owner_user_id,
            "marketplace_user_id": credential.marketplace_user_id,
            "access_token_encrypted": self._cipher.encrypt(credential.access_token),
            "refresh_token_encrypted": self._cipher.encrypt(credential.refresh_token),
            "expires_at": expires_at.isoformat(),
            "site_id": profile.site_id,
            "nickname": profile.nickname,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }
        self._store.upsert_account(record)
        logger.info(
            "Linked marketplace user %s to owner %s (site %s)",
            credential.marketplace_user_id,
            owner_user_id,
            profile.site_id,
        )

        return LinkedAccount(
            owner_user_id=owner_user_id,
            marketplace_user_id=credential.marketplace_user_id,
            access_token=credential.access_token,
            refresh_token=credential.refresh_token,
            expires_at=expires_at,
            site_id=profile.site_id,
            nickname=profile.nickname,
            updated_at=now,
        )

    def get_linked_account(
        self, *, owner_user_id: str, marketplace_user_id: str
    ) -> LinkedAccount | None:
        """Load an account with decrypted tokens, for downstream sync jobs."""
        record = self._store.get_account(
            owner_user_id=owner_user_id, marketplace_user_id=marketplace_user_id
        )
        if record is None:
            return None
        return self._to_account(record)

    def list_accounts(self, *, owner_user_id: str) -> list[LinkedAccountSummary]:
        return [
            LinkedAccountSummary(
                marketplace_user_id=record["marketplace_user_id"],
                nickname=record["nickname"],
                site_id=record["site_id"],
                expires_at=_parse_timestamp(record["expires_at"]),
                updated_at=_parse_timestamp(record["updated_at"]),
            )
            for record in self._store.list_accounts(owner_user_id=owner_user_id)
        ]

    def _to_account(self, record: Dict[str, Any]) -> LinkedAccount:
        return LinkedAccount(
            owner_user_id=record["owner_user_id"],
            marketplace_user_id=record["marketplace_user_id"],
            access_token=self._cipher.decrypt(record["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt(record["refresh_token_encrypted"]),
            expires_at=_parse_timestamp(record["expires_at"]),
            site_id=record["site_id"],
            nickname=record["nickname"],
            updated_at=_parse_timestamp(record["updated_at"]),
            created_at=_parse_timestamp(record["created_at"]),
        )


__all__ = ["AccountLinker"]
