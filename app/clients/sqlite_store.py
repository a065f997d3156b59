"""SQLite-backed storage for linked marketplace accounts."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "owner_user_id",
    "marketplace_user_id",
    "access_token_encrypted",
    "refresh_token_encrypted",
    "expires_at",
    "site_id",
    "nickname",
    "created_at",
    "updated_at",
)


class LinkedAccountStore:
    """Relational table keyed by (owner_user_id, marketplace_user_id)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._schema_ready = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        if not self._schema_ready:
            self._ensure_schema()
        try:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Linked account %s failed: %s", operation, exc)
            raise PersistenceError(f"Could not {operation} linked account.") from exc

    def _ensure_schema(self) -> None:
        # Flag first: _transaction would otherwise recurse into this method.
        self._schema_ready = True
        try:
            self._create_table()
        except PersistenceError:
            self._schema_ready = False
            raise

    def _create_table(self) -> None:
        with self._transaction("initialize storage for") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS linked_accounts (
                    owner_user_id TEXT NOT NULL,
                    marketplace_user_id TEXT NOT NULL,
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    site_id TEXT NOT NULL,
                    nickname TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (owner_user_id, marketplace_user_id)
                )
                """
            )

    def upsert_account(self, item: Dict[str, Any]) -> None:
        """Insert a row, or overwrite credentials and metadata of an existing one."""
        missing = [column for column in _COLUMNS if not item.get(column)]
        if missing:
            raise ValueError(f"Linked account is missing {', '.join(missing)}")

        with self._transaction("save") as conn:
            conn.execute(
                """
                INSERT INTO linked_accounts (
                    owner_user_id, marketplace_user_id,
                    access_token_encrypted, refresh_token_encrypted,
                    expires_at, site_id, nickname, created_at, updated_at
                )
                VALUES (
                    :owner_user_id, :marketplace_user_id,
                    :access_token_encrypted, :refresh_token_encrypted,
                    :expires_at, :site_id, :nickname, :created_at, :updated_at
                )
                ON CONFLICT(owner_user_id, marketplace_user_id) DO UPDATE SET
                    access_token_encrypted = excluded.access_token_encrypted,
                    refresh_token_encrypted = excluded.refresh_token_encrypted,
                    expires_at = excluded.expires_at,
                    site_id = excluded.site_id,
                    nickname = excluded.nickname,
                    updated_at = excluded.updated_at
                """,
                {column: item[column] for column in _COLUMNS},
            )

    def get_account(
        self, *, owner_user_id: str, marketplace_user_id: str
    ) -> Optional[Dict[str, Any]]:
        with self._transaction("read") as conn:
            row = conn.execute(
                "SELECT * FROM linked_accounts"
                " WHERE owner_user_id = ? AND marketplace_user_id = ?",
                (owner_user_id, marketplace_user_id),
            ).fetchone()
        if not row:
            return None
        return dict(row)

    def list_accounts(self, *, owner_user_id: str) -> list[Dict[str, Any]]:
        with self._transaction("list") as conn:
            rows = conn.execute(
                "SELECT * FROM linked_accounts WHERE owner_user_id = ?"
                " ORDER BY created_at DESC",
                (owner_user_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def count_accounts(self) -> int:
        with self._transaction("count") as conn:
            row = conn.execute("SELECT COUNT(*) FROM linked_accounts").fetchone()
        return int(row[0])


__all__ = ["LinkedAccountStore"]
