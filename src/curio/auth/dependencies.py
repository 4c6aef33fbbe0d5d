"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from curio.auth.jwt import verify_token
from curio.database import get_session
from curio.db.models import Account
from curio.rewards.award_service import get_or_create_account

_bearer = HTTPBearer()


async def get_current_account(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> Account:
    """
    Verify the bearer JWT and return the caller's Account.

    The account row is created on first sight of a subject. Raises 401 on
    an invalid token.
    """
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    account = await get_or_create_account(db, str(payload["sub"]), payload.get("name"))
    await db.commit()
    return account
