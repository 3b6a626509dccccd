"""
FastAPI dependencies that turn a bearer token into a Caller.

  get_current_user   JWT -> active User                 (401 otherwise)
  get_caller         User -> Caller                     (any role)
  require_admin      User -> Caller                     (403 unless ADMIN)

The card services repeat their own role and ownership checks on the
Caller they receive. require_admin exists so admin-only routes fail before
the request touches a card.
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User
from app.schemas.caller import Caller
from app.security import decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _account_id_from_token(token: str) -> uuid.UUID:
    """Read the account id from the token's "sub" claim."""
    try:
        subject = decode_access_token(token).get("sub")
        if subject is None:
            raise _unauthorized()
        return uuid.UUID(subject)
    except (JWTError, ValueError) as exc:
        raise _unauthorized() from exc


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    The active account the bearer token was issued to.

    Raises:
        HTTPException 401: Bad or expired token, unknown or deactivated account.
    """
    user = await db.get(User, _account_id_from_token(token))
    if user is None or not user.is_active:
        raise _unauthorized()
    return user


async def get_caller(user: User = Depends(get_current_user)) -> Caller:
    return Caller(account_id=user.id, role=user.role)


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    """
    The Caller, provided it has the ADMIN role.

    Raises:
        HTTPException 403: If the account is not an admin.
    """
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return caller
