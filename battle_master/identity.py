"""Session identity — custom-token sign-in with anonymous fallback.

The identity is display-only; nothing is persisted under it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from battle_master.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionIdentity:
    app_id: str
    user_id: str
    anonymous: bool


def create_custom_token(
    user_id: str,
    *,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_custom_token(token: str, *, secret: str, algorithm: str = "HS256") -> dict | None:
    """Decode and validate a custom token. Returns claims dict or None on any error."""
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        logger.warning(f"Custom token rejected: {e}")
        return None


def resolve_identity(
    settings: Optional[Settings] = None,
    token: Optional[str] = None,
) -> SessionIdentity:
    """Sign in with ``token`` (or the configured one), else anonymously."""
    settings = settings or get_settings()
    token = token or settings.auth_token

    if token and settings.auth_secret:
        claims = decode_custom_token(
            token, secret=settings.auth_secret, algorithm=settings.auth_algorithm
        )
        if claims and claims.get("sub"):
            return SessionIdentity(app_id=settings.app_id, user_id=str(claims["sub"]), anonymous=False)
    elif token:
        logger.warning("Custom token supplied but no auth secret configured; signing in anonymously")

    return SessionIdentity(app_id=settings.app_id, user_id=str(uuid.uuid4()), anonymous=True)
