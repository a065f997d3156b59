"""Authenticate product users from their bearer tokens."""

from __future__ import annotations

import logging

from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import AuthSettings
from app.core.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


class CallerAuthenticator:
    """Verify HS256 session tokens issued by the identity provider."""

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    def authenticate(self, authorization: str | None) -> str:
        """Return the product user id (``sub``) behind an ``Authorization`` header."""
        if not authorization:
            raise AuthenticationError("Authentication token was not provided.")

        scheme, _, token = authorization.strip().partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise AuthenticationError("Authorization header must be a bearer token.")

        if not self._settings.jwt_secret:
            raise ConfigurationError("Session verification secret is not configured.")

        audience = self._settings.jwt_audience or None
        try:
            claims = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
                audience=audience,
                options={"verify_aud": audience is not None},
            )
        except ExpiredSignatureError as exc:
            raise AuthenticationError("Session has expired; sign in again.") from exc
        except JWTError as exc:
            logger.info("Rejected bearer token: %s", exc)
            raise AuthenticationError("User is not authenticated.") from exc

        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError("Session token has no subject.")
        return str(user_id)


__all__ = ["CallerAuthenticator"]
