"""JWT access tokens. The token subject is the user id."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import jwt

from src.config import settings
from src.logger import get_logger

logger = get_logger(__name__)


def create_access_token(
    subject: UUID | str,
    *,
    expires_delta: timedelta | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Issue a signed access token for a user."""
    issued_at = datetime.now(UTC)
    expire = issued_at + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    claims: dict[str, Any] = dict(extra_claims or {})
    claims.update({"sub": str(subject), "iat": issued_at, "exp": expire})
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT access token; None when invalid or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.debug("JWT token expired")
        return None
    except jwt.PyJWTError as exc:
        logger.warning(
            "JWT decode failed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return None
