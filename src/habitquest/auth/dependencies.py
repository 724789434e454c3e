"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.auth.jwt import verify_token
from habitquest.database import get_session
from habitquest.db.models import UserProfile
from habitquest.users.service import get_or_create_profile

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> UserProfile:
    """
    Verify the bearer token and return the caller's profile.

    A profile is created the first time a subject is seen. Raises 401 on
    any token problem.
    """
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    return await get_or_create_profile(db, str(payload["sub"]), email=payload.get("email"))
