"""Shared FastAPI dependencies.

Authentication happens upstream: the gateway verifies the session and
forwards the caller's id in the X-User-Id header. This service trusts that
header and only checks that it is present and well formed.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from promoboard.database import get_db

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> uuid.UUID:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed caller identity",
        ) from None


CurrentUser = Annotated[uuid.UUID, Depends(get_current_user)]
