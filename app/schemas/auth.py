"""
Pydantic schemas for the /auth endpoints.

An "account" here is the identity that owns cards: its id is the
owner_account_id stored on every card, and its role decides what the
card services let it do.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.models.user import User, UserRole


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup. The role is never client-supplied."""
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"


class SignupResponse(TokenResponse):
    """The new account plus a token, so the caller is logged in right away."""
    account_id: uuid.UUID
    email: str
    role: UserRole


class AccountResponse(BaseModel):
    """Response body for GET /auth/me."""
    account_id: uuid.UUID
    email: str
    role: UserRole
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "AccountResponse":
        return cls(
            account_id=user.id,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
        )
