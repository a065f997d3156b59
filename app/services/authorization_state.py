"""
Encode and decode the OAuth ``state`` parameter.

The state is ``owner|nonce|expires_at_ms`` in plain text. It is not signed:
the exchange path binds the link to the independently authenticated caller,
so a forged state can only ever link an account to the forger's own identity.
"""

from __future__ import annotations

import base64
import binascii
import json
import time
import uuid

from app.core.exceptions import InvalidStateError
from app.models.linked_account import AuthorizationState

STATE_DELIMITER = "|"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def encode_state(owner_user_id: str, nonce: str, expires_at_ms: int) -> str:
    """Join the state fields in fixed order."""
    if not owner_user_id or not nonce:
        raise ValueError("State owner and nonce must be non-empty.")
    if STATE_DELIMITER in owner_user_id or STATE_DELIMITER in nonce:
        raise ValueError(f"State fields must not contain {STATE_DELIMITER!r}.")
    return STATE_DELIMITER.join((owner_user_id, nonce, str(int(expires_at_ms))))


def issue_state(
    owner_user_id: str, *, ttl_seconds: int, issued_at_ms: int | None = None
) -> AuthorizationState:
    """Create a fresh state with an unguessable nonce."""
    issued_at_ms = now_ms() if issued_at_ms is None else issued_at_ms
    return AuthorizationState(
        owner_user_id=owner_user_id,
        nonce=uuid.uuid4().hex,
        expires_at_ms=issued_at_ms + ttl_seconds * 1000,
    )


def _parse_legacy(raw: str) -> AuthorizationState | None:
    # Older clients sent base64 JSON: {"owner_user_id", "nonce", "exp"}.
    try:
        payload = json.loads(base64.b64decode(raw.encode("utf-8"), validate=True))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    owner = payload.get("owner_user_id")
    nonce = payload.get("nonce")
    exp = payload.get("exp")
    if not owner or not nonce or isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return AuthorizationState(owner_user_id=str(owner), nonce=str(nonce), expires_at_ms=int(exp))


def parse_state(raw: str, *, allow_legacy: bool = False) -> AuthorizationState:
    """Split a raw state into its fields, checking shape only."""
    if not raw:
        raise InvalidStateError("State is missing.")

    parts = raw.split(STATE_DELIMITER)
    if len(parts) == 3:
        owner, nonce, exp_raw = parts
        try:
            expires_at_ms = int(exp_raw)
        except ValueError:
            raise InvalidStateError("State is malformed.") from None
        if owner and nonce:
            return AuthorizationState(
                owner_user_id=owner, nonce=nonce, expires_at_ms=expires_at_ms
            )
    elif allow_legacy:
        legacy = _parse_legacy(raw)
        if legacy is not None:
            return legacy

    raise InvalidStateError("State is malformed.")


def validate_state(
    raw: str,
    *,
    expected_user_id: str | None = None,
    allow_legacy: bool = False,
    current_ms: int | None = None,
) -> AuthorizationState:
    """Parse a state and reject it when expired or bound to another user."""
    state = parse_state(raw, allow_legacy=allow_legacy)
    if expected_user_id is not None and state.owner_user_id != expected_user_id:
        raise InvalidStateError("State does not belong to the authenticated user.")
    current_ms = now_ms() if current_ms is None else current_ms
    if current_ms > state.expires_at_ms:
        raise InvalidStateError("State has expired; restart the linking flow.")
    return state


def decode_state(raw: str, expected_user_id: str, *, current_ms: int | None = None) -> str:
    """Return the nonce of a valid state issued to ``expected_user_id``."""
    return validate_state(
        raw, expected_user_id=expected_user_id, current_ms=current_ms
    ).nonce


__all__ = [
    "STATE_DELIMITER",
    "decode_state",
    "encode_state",
    "issue_state",
    "now_ms",
    "parse_state",
    "validate_state",
]
