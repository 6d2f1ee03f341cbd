"""
Access token service: HS256-signed, time-limited JWTs.

Tokens carry whatever claims the caller supplies; no shape is enforced.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, Header

from dishpalate.config import Settings, get_settings
from dishpalate.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "HS256"
DEFAULT_LIFETIME_SECONDS = 3600

# Claims are caller-supplied and unvalidated; only signature and expiry count.
_CLAIM_OPTIONS = {
    "verify_aud": False,
    "verify_iss": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_sub": False,
    "verify_jti": False,
}


def issue_token(
    claims: dict,
    *,
    secret: str,
    lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """Sign ``claims`` with ``secret`` and an ``exp`` ``lifetime_seconds`` from now."""
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=lifetime_seconds)
    return jwt.encode(payload, secret, algorithm=algorithm)


def verify_token(
    token: str, *, secret: str, algorithm: str = DEFAULT_ALGORITHM
) -> dict:
    """Return the decoded claims, or raise ``Forbidden`` for any bad or expired token."""
    try:
        return jwt.decode(
            token, secret, algorithms=[algorithm], options=_CLAIM_OPTIONS
        )
    except jwt.PyJWTError as exc:
        logger.debug("Token rejected: %s", exc)
        raise Forbidden() from exc


def bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise Unauthorized()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized()
    return token.strip()


def require_token(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> dict:
    """FastAPI dependency guarding a route with ``Authorization: Bearer <token>``."""
    token = bearer_token(authorization)
    return verify_token(token, secret=settings.access_token_secret)
