"""
Custom exception classes and FastAPI exception handlers.

The service layer raises these domain errors without importing any HTTP
concepts; register_exception_handlers() translates them into responses.
Every business-rule violation maps to its own status code, never a generic 500.

Exception hierarchy:
    BankCardsError (base)
    ├── NotFoundError                  — 404
    │   ├── CardNotFoundError
    │   └── AccountNotFoundError
    ├── PermissionDeniedError          — 403, cross-account access or missing role
    ├── ValidationError                — 400, malformed input the schemas can't catch
    ├── InvalidStateTransitionError    — 400, e.g. activating an expired card
    ├── InsufficientFundsError         — 400, carries requested and available amounts
    ├── CryptoError                    — 500, corrupt or tampered ciphertext
    ├── StorageError                   — 503, backend failure (caller may retry)
    ├── DuplicateEmailError            — 409
    └── InvalidCredentialsError        — 401
"""

import uuid
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class BankCardsError(Exception):
    """Base exception for all Bank Cards API domain errors."""

    status_code = 400
    error_type = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class NotFoundError(BankCardsError):
    """Base class for missing cards and accounts."""

    status_code = 404
    error_type = "not_found"


class CardNotFoundError(NotFoundError):
    """Raised when a requested card does not exist."""

    error_type = "card_not_found"

    def __init__(self, card_id: uuid.UUID):
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")


class AccountNotFoundError(NotFoundError):
    """Raised when the owning account for a new card does not exist."""

    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class PermissionDeniedError(BankCardsError):
    """Raised when a caller touches a card they don't own, or lacks the admin role."""

    status_code = 403
    error_type = "permission_denied"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class ValidationError(BankCardsError):
    """Raised for input that passes schema validation but breaks a business rule."""

    error_type = "validation_error"


class InvalidStateTransitionError(BankCardsError):
    """Raised when a card's current status does not allow the requested operation."""

    error_type = "invalid_state_transition"


class InsufficientFundsError(BankCardsError):
    """
    Raised when a transfer would take a card balance below zero.

    Attributes:
        requested: The amount the caller tried to move.
        available: The source card's balance at the time of the check.
    """

    error_type = "insufficient_funds"

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds: requested {requested}, available {available}"
        )


class CryptoError(BankCardsError):
    """Raised when a card number blob can't be decrypted or a key is unusable."""

    status_code = 500
    error_type = "crypto_error"


class StorageError(BankCardsError):
    """Raised when the database backend fails. Not retried internally."""

    status_code = 503
    error_type = "storage_error"


class DuplicateEmailError(BankCardsError):
    """Raised when attempting to register with an email that's already in use."""

    status_code = 409
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(BankCardsError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Every domain error is rendered as {"detail": ..., "error_type": ...}
    using the status_code declared on its class. InsufficientFundsError
    additionally carries the requested and available amounts.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "requested": str(exc.requested),
                "available": str(exc.available),
            },
        )

    @app.exception_handler(BankCardsError)
    async def bank_cards_error_handler(
        request: Request, exc: BankCardsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )
