"""Authentication helpers for request-scoped organization context."""

from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.models import User
from src.security import decode_access_token
from src.utils.exceptions import raise_unauthorized

# Tokens are issued by the identity service; this API only verifies them
bearer_scheme = HTTPBearer(auto_error=False)


def bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Raw token from an ``Authorization: Bearer`` header."""
    if credentials is None:
        raise_unauthorized("Not authenticated")
    return credentials.credentials


def _user_id_from_token(token: str) -> UUID:
    payload = decode_access_token(token)
    if not payload:
        raise_unauthorized("Could not validate credentials")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise_unauthorized("Token missing subject")

    try:
        return UUID(user_id_str)
    except ValueError as exc:
        raise_unauthorized("Invalid user ID format in token", cause=exc)


async def get_current_organization_id(
    token: str = Depends(bearer_token),
    db: AsyncSession = Depends(get_db),
) -> UUID:
    """Resolve the organization the authenticated user belongs to.

    Every banking operation is scoped to this organization.
    """
    user_id = _user_id_from_token(token)

    result = await db.execute(select(User.organization_id).where(User.id == user_id))
    organization_id = result.scalar_one_or_none()
    if organization_id is None:
        raise_unauthorized("User not found")

    return organization_id
