"""
Cards router — issuance, status changes, listing, balances and transfers.

Endpoints:
  POST   /cards/accounts/{account_id}  — [Admin] Issue a card for an account
  GET    /cards                        — [Admin] List all cards (filters + paging)
  GET    /cards/my                     — List the caller's own cards
  POST   /cards/transfer               — Move money between two of the caller's cards
  GET    /cards/{card_id}              — Get one card (owner or admin)
  GET    /cards/{card_id}/balance      — Get the balance of an own card
  PATCH  /cards/{card_id}/block        — Block a card (owner or admin)
  PATCH  /cards/{card_id}/activate     — [Admin] Activate a card
  PATCH  /cards/{card_id}/unblock      — [Admin] Lift a block
  DELETE /cards/{card_id}              — [Admin] Delete a card

Every card in a response is rendered through CardResponse.from_card, which
exposes only the masked card number. Static paths (/my, /transfer) are
declared before /{card_id} so they aren't captured by the path parameter.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_caller, require_admin
from app.models.card import CardStatus
from app.schemas.caller import Caller
from app.schemas.card import (
    BalanceResponse,
    CardCreateRequest,
    CardPageResponse,
    CardResponse,
    TransferRequest,
)
from app.services import card_ledger, card_lifecycle

router = APIRouter()


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/accounts/{account_id}",
    response_model=CardResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Issue a card for an account",
)
async def create_card(
    account_id: uuid.UUID,
    request: CardCreateRequest,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Issue a new card for the given account.

    - The card starts ACTIVE with a zero balance
    - The expiry date cannot be in the past
    - The card number is encrypted at rest and only ever returned masked
    """
    card = await card_lifecycle.create_card(
        db=db,
        caller=caller,
        account_id=account_id,
        owner_name=request.owner_name,
        expiry_date=request.expiry_date,
        card_number=request.card_number,
    )
    return CardResponse.from_card(card)


@router.get(
    "",
    response_model=CardPageResponse,
    summary="[Admin] List all cards",
)
async def list_all_cards(
    owner_name: str | None = Query(None, description="Case-insensitive substring of the owner name"),
    card_status: CardStatus | None = Query(None, alias="status"),
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List every card in the system, optionally filtered by owner name and status."""
    result = await card_lifecycle.list_all_cards(
        db, caller, owner_name, card_status, page, size
    )
    return CardPageResponse.from_page(result)


@router.get(
    "/my",
    response_model=CardPageResponse,
    summary="List my cards",
)
async def list_my_cards(
    owner_name: str | None = Query(None, description="Case-insensitive substring of the owner name"),
    card_status: CardStatus | None = Query(None, alias="status"),
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List the authenticated user's own cards."""
    result = await card_lifecycle.list_own_cards(
        db, caller, owner_name, card_status, page, size
    )
    return CardPageResponse.from_page(result)


@router.post(
    "/transfer",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Transfer money between my cards",
)
async def transfer(
    request: TransferRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Move money between two cards owned by the authenticated user.

    Either both balances change or neither does. Both cards must be ACTIVE
    and the source card must hold at least **amount**.
    """
    await card_ledger.transfer(
        db=db,
        caller=caller,
        from_card_id=request.from_card_id,
        to_card_id=request.to_card_id,
        amount=request.amount,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Single-card endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/{card_id}",
    response_model=CardResponse,
    summary="Get a card (masked)",
)
async def get_card(
    card_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get one card. Owners see their own cards; admins see any card."""
    card = await card_lifecycle.get_card(db, card_id, caller)
    return CardResponse.from_card(card)


@router.get(
    "/{card_id}/balance",
    response_model=BalanceResponse,
    summary="Get the balance of my card",
)
async def get_balance(
    card_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Return the exact balance of one of the caller's own cards."""
    balance = await card_ledger.get_balance(db, card_id, caller)
    return BalanceResponse(card_id=card_id, balance=balance)


@router.patch(
    "/{card_id}/block",
    response_model=CardResponse,
    summary="Block a card",
)
async def block_card(
    card_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Block a card. Owners may block their own cards; admins may block any card."""
    card = await card_lifecycle.block_card(db, card_id, caller)
    return CardResponse.from_card(card)


@router.patch(
    "/{card_id}/activate",
    response_model=CardResponse,
    summary="[Admin] Activate a card",
)
async def activate_card(
    card_id: uuid.UUID,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Activate a blocked card. Expired cards cannot be activated."""
    card = await card_lifecycle.activate_card(db, card_id, caller)
    return CardResponse.from_card(card)


@router.patch(
    "/{card_id}/unblock",
    response_model=CardResponse,
    summary="[Admin] Unblock a card",
)
async def unblock_card(
    card_id: uuid.UUID,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Lift a block from a card (same rules as activate)."""
    card = await card_lifecycle.unblock_card(db, card_id, caller)
    return CardResponse.from_card(card)


@router.delete(
    "/{card_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="[Admin] Delete a card",
)
async def delete_card(
    card_id: uuid.UUID,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Permanently delete a card. This cannot be undone."""
    await card_lifecycle.delete_card(db, card_id, caller)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
