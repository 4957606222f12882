"""FastAPI dependencies that resolve the caller and gate on role."""

import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import decode_token
from app.database import get_db
from app.errors import AuthenticationRequired, Forbidden
from app.models.profile import Profile

# auto_error=False so a missing header becomes our own 401, not FastAPI's
_bearer_scheme = HTTPBearer(auto_error=False)

_BLOCKED_ACCOUNT_STATUSES = frozenset({"suspended", "deactivated"})


async def get_current_profile(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Resolve the bearer token to a profile.

    Raises:
        AuthenticationRequired: missing header, invalid/expired token, wrong
            token type, or no profile for the subject.
    """
    if credentials is None:
        raise AuthenticationRequired("Missing Authorization header")

    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise AuthenticationRequired() from None

    # Only accept access tokens, not refresh tokens
    if payload.get("type", "access") != "access":
        raise AuthenticationRequired("Invalid token type")

    sub: str | None = payload.get("sub")
    if sub is None:
        raise AuthenticationRequired()

    try:
        profile_id = uuid.UUID(sub)
    except ValueError:
        raise AuthenticationRequired() from None

    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise AuthenticationRequired()

    return profile


async def get_current_active_profile(
    profile: Profile = Depends(get_current_profile),
) -> Profile:
    """Return the caller only if their account is not suspended or deactivated.

    Raises:
        Forbidden: account is suspended or deactivated.
    """
    if profile.status in _BLOCKED_ACCOUNT_STATUSES:
        raise Forbidden("Account is not active")
    return profile


async def require_admin(
    profile: Profile = Depends(get_current_active_profile),
) -> Profile:
    """Allow only profiles with the admin role.

    Raises:
        Forbidden: caller is not an admin.
    """
    if not profile.is_admin:
        raise Forbidden("Admin access required")
    return profile
