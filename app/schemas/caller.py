"""
The caller identity consumed by the card services.

The API layer resolves a Caller from the bearer token (see
app.dependencies.get_caller) and passes it explicitly into every
lifecycle and ledger call. Services never look up "the current user"
on their own, which keeps them free of FastAPI and easy to test.
"""

import uuid

from pydantic import BaseModel

from app.models.user import UserRole


class Caller(BaseModel):
    """Who is making a request: their account id and role."""
    account_id: uuid.UUID
    role: UserRole

    model_config = {"frozen": True}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def owns(self, owner_account_id: uuid.UUID) -> bool:
        return self.account_id == owner_account_id
