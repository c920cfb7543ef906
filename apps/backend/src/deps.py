"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from src.deps import CurrentOrganizationId, DbSession

    async def my_endpoint(db: DbSession, organization_id: CurrentOrganizationId):
        # db is AsyncSession with get_db dependency injected
        # organization_id is the caller's organization UUID
        ...
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_organization_id
from src.database import get_db

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentOrganizationId = Annotated[UUID, Depends(get_current_organization_id)]

__all__ = ["CurrentOrganizationId", "DbSession"]
