"""Bearer token handling.

Tokens are issued by the identity service that shares ``jwt_secret_key``;
this service verifies them and reads the subject. ``create_access_token``
exists for local tooling and tests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from fieldops.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REQUIRED_CLAIMS = ("exp", "sub", "iat")


class TokenError(Exception):
    """A token that was well-formed but can no longer be accepted."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def create_access_token(
    user_id: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign an access token for ``user_id``.

    Lifetime defaults to ``jwt_access_token_expire_minutes``.
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    claims: dict[str, Any] = {
        **(additional_claims or {}),
        "sub": user_id,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _reject(reason: str) -> None:
    logger.debug(f"Rejected bearer token: {reason}")


def verify_access_token(token: str) -> dict[str, Any] | None:
    """Return the claims of a valid access token.

    Returns:
        Claims dict, or None when the token is malformed, badly signed,
        of another type or has no subject

    Raises:
        TokenError: TOKEN_EXPIRED when the signature is fine but ``exp`` passed
    """
    if not token:
        _reject("empty token")
        return None

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={f"require_{claim}": True for claim in REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        _reject("expired")
        raise TokenError("TOKEN_EXPIRED", "Token has expired")
    except jwt.JWTClaimsError as e:
        _reject(f"claims ({e})")
        return None
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {type(e).__name__}")
        return None

    if claims.get("type") != ACCESS_TOKEN_TYPE:
        _reject(f"token type {claims.get('type')!r}")
        return None
    if not str(claims.get("sub") or "").strip():
        _reject("empty subject")
        return None
    return claims
