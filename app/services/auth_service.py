"""
Account registration and login.

The card services only ever see a Caller (account id + role). This module
is the small identity provider behind it: it creates USER accounts and
exchanges credentials for a JWT whose "sub" claim is the account id.
Administrators are never created here; an existing account is promoted
out of band (demo/promote_admin.py).

Login fails with the same InvalidCredentialsError whether the email is
unknown, the password is wrong or the account is deactivated, so the
response can't be used to find out which emails are registered.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DuplicateEmailError, InvalidCredentialsError
from app.models.user import User, UserRole
from app.security import create_access_token, hash_password, verify_password


logger = logging.getLogger(__name__)


async def _find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


def issue_token(user: User) -> str:
    """Sign a bearer token for the account."""
    return create_access_token(data={"sub": str(user.id)})


async def signup(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    """
    Create a USER account and return it with a fresh token.

    Raises:
        DuplicateEmailError: If the email is already registered, including
            when a concurrent signup wins the unique constraint.
    """
    if await _find_by_email(db, email) is not None:
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
        role=UserRole.USER,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateEmailError(email) from exc

    logger.info("Account %s registered", user.id)
    return user, issue_token(user)


async def login(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    """
    Check credentials and return the account with a fresh token.

    Raises:
        InvalidCredentialsError: For any failure; see module docstring.
    """
    user = await _find_by_email(db, email)
    if user is None or not user.is_active:
        raise InvalidCredentialsError()
    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    return user, issue_token(user)
