"""
Auth router — account registration, login and the current account.

Endpoints:
  POST /auth/signup  — Register a USER account and get a token
  POST /auth/login   — Exchange email + password for a token
  GET  /auth/me      — The authenticated account (id, email, role)

/auth/me is how a client learns its own account id, which is the
owner_account_id an admin issues cards against.

Plaintext passwords exist only in memory during request processing;
they are hashed before any database operation and never logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.auth import (
    AccountResponse,
    LoginRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
)
from app.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an account",
)
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a new card holder account. New accounts always get the USER role.

    - **email**: Must be a valid email address that isn't registered yet
    - **password**: 8 to 128 characters
    """
    user, token = await auth_service.signup(db, request.email, request.password)
    return SignupResponse(
        account_id=user.id,
        email=user.email,
        role=user.role,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Log in",
)
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate with email and password. Send the returned token as:

        Authorization: Bearer <token>
    """
    _, token = await auth_service.login(db, request.email, request.password)
    return TokenResponse(token=token)


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get the current account",
)
async def me(user: User = Depends(get_current_user)):
    return AccountResponse.from_user(user)
