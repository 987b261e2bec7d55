"""
Verify bearer JWTs and extract the claims we care about.

Tokens are issued by the login service (outside this app) and signed with a
shared secret. Before trusting anything in a token we check:

    1. the **signature** (`ORGSCOPE_JWT_SECRET`, `ORGSCOPE_JWT_ALGORITHM`)
    2. the **expiry** (`exp`, with `ORGSCOPE_JWT_LEEWAY_SECONDS` of clock skew)

The claims only tell us *who* is calling. Role and hierarchy attachments are
re-read from the `users` table on every request, so a demoted or moved user
loses access immediately even with a still-valid token.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import jwt

from orgscope.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when token validation fails. Do not log the token."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    role: str | None = None
    email: str | None = None


def _extract_claims(payload: dict[str, Any]) -> TokenClaims:
    """
    Claim mapping:

    * **sub** - user id (preferred).
    * **userId** - user id as emitted by older login builds.
    * **role** - informational only; the persisted role wins.
    * **email** - display only.
    """

    user_id = payload.get("sub") or payload.get("userId") or ""
    user_id = str(int(user_id)) if isinstance(user_id, (int, float)) else str(user_id).strip()
    if not user_id:
        raise ValidationError("Invalid token: missing subject")

    role = payload.get("role")
    email = payload.get("email")
    return TokenClaims(
        user_id=user_id,
        role=str(role) if role is not None else None,
        email=str(email) if email is not None else None,
    )


def decode_token(token: str, settings: Settings | None = None) -> TokenClaims:
    """
    Validate the bearer token and return its claims.

    Raises ValidationError if the signature or lifetime checks fail.
    """

    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            leeway=settings.jwt_leeway_seconds,
            options={"require": ["exp"], "verify_exp": True},
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Token expired")
        raise ValidationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        logger.info("Token invalid: %s", type(e).__name__)
        raise ValidationError("Invalid token") from e

    return _extract_claims(payload)

