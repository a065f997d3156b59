"""Symmetric encryption for marketplace tokens at rest."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from app.core.exceptions import ConfigurationError, PersistenceError


class TokenCipherService:
    """Encrypt and decrypt marketplace tokens using a derived Fernet key.

    The key is derived on first use, so a missing secret only fails the
    operations that actually touch stored tokens.
    """

    def __init__(self, *, secret: str | None) -> None:
        self._secret = secret
        self._fernet: Fernet | None = None

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            if not self._secret:
                raise ConfigurationError("Token encryption secret is not configured.")
            digest = hashlib.sha256(self._secret.encode("utf-8")).digest()
            self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        return self._fernet

    def encrypt(self, plaintext: str) -> str:
        return self._cipher().encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored token; a key mismatch means the row is unusable."""
        try:
            plaintext = self._cipher().decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise PersistenceError(
                "Stored token could not be decrypted; the account must be re-linked."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
