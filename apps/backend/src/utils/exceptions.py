"""Common exception utilities for FastAPI dependencies and routers."""

from typing import NoReturn

from fastapi import HTTPException, status


def raise_unauthorized(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    ) from cause
