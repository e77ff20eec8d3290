"""JWT helpers.

Tokens are issued by the external auth service; ``create_access_token`` only
exists for tooling and tests, using the same claims that service sets.
"""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwt

from dealroom.core.settings import settings


def create_access_token(
    user_id: int,
    role: str,
    extra_claims: dict[str, Any] | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Create a signed JWT with ``sub`` (user id) and ``role`` claims."""
    to_encode: dict[str, Any] = {"sub": str(user_id), "role": role}
    if extra_claims:
        to_encode.update(extra_claims)
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    to_encode["exp"] = datetime.now(UTC) + timedelta(minutes=minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a token; raises ``jose.JWTError`` when invalid or expired."""
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    return payload
