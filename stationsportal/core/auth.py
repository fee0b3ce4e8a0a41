from dataclasses import dataclass
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from stationsportal.database import get_db
from stationsportal.models.user import User
from stationsportal.config import settings
from stationsportal.core.exceptions import AuthenticationError, AuthorizationError

# auto_error=False: a missing header must answer 401, not HTTPBearer's 403
reusable_oauth2 = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Caller:
    """Request-scoped identity handed to every service call."""
    user_id: int
    role: str
    org_unit_id: Optional[int] = None

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        return cls(user_id=user.id, role=user.role, org_unit_id=user.org_unit_id)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: Optional[HTTPAuthorizationCredentials] = Depends(reusable_oauth2)
) -> User:
    if token is None:
        raise AuthenticationError()
    try:
        payload = jwt.decode(
            token.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
        user_id = payload.get("sub")
        if user_id is None or payload.get("type", "access") != "access":
            raise AuthenticationError("Could not validate credentials")
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise AuthenticationError("Could not validate credentials")
    return user


async def get_caller(current_user: User = Depends(get_current_user)) -> Caller:
    return Caller.from_user(current_user)


def require_roles(*roles: str):
    async def _check(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in roles:
            raise AuthorizationError(f"Requires role: {', '.join(roles)}")
        return caller
    return _check


get_current_admin = require_roles("admin")
