"""
Card ledger — balance transfers between a caller's own cards.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It guarantees that:
  - Money is conserved: every transfer debits and credits the same amount
  - No balance ever goes negative
  - A transfer is all-or-nothing, even if the database fails or the
    caller gives up mid-way

Precondition order (the first failure wins):
  1. Source and target are different cards           -> ValidationError
  2. Both cards exist                                 -> CardNotFoundError
  3. The caller owns both cards                       -> PermissionDeniedError
  4. Lazy expiry check on both cards
  5. Both cards are ACTIVE                            -> InvalidStateTransitionError
  6. Amount is positive with at most two decimals     -> ValidationError
     and the source balance covers it                 -> InsufficientFundsError

Locking:
  Both cards' locks are taken through CardLockRegistry.hold(), which
  acquires them in ascending id order so that A->B and B->A transfers can't
  deadlock. The cards are re-read inside the locks with FOR UPDATE and
  populate_existing, so the balances being checked are the committed ones,
  not a stale copy from the session's identity map.

Atomicity:
  Both balance changes are flushed and committed in one database
  transaction *while the locks are still held*. If the flush or commit
  fails, the session is rolled back and neither card changes. Because the
  commit is the only point at which anything becomes visible, a caller
  that is cancelled before it leaves nothing half-applied behind.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    CardNotFoundError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from app.models.card import CardStatus, from_cents, to_cents
from app.schemas.caller import Caller
from app.services import card_store
from app.services.card_lifecycle import ensure_current_status, get_card_or_404, utc_today
from app.services.card_locks import CardLockRegistry, card_locks


logger = logging.getLogger(__name__)


async def transfer(
    db: AsyncSession,
    caller: Caller,
    from_card_id: uuid.UUID,
    to_card_id: uuid.UUID,
    amount: Decimal,
    locks: CardLockRegistry = card_locks,
) -> None:
    """
    Move `amount` from one of the caller's cards to another.

    Args:
        db: Database session. The transfer commits it.
        caller: The account initiating the transfer; must own both cards.
        from_card_id: Card to debit.
        to_card_id: Card to credit.
        amount: Positive Decimal with at most two decimal places.
        locks: Per-card lock registry (shared process-wide by default).

    Raises:
        ValidationError, CardNotFoundError, PermissionDeniedError,
        InvalidStateTransitionError, InsufficientFundsError: See module docstring.
        StorageError: If the balance update could not be committed; nothing
            was applied.
    """
    if from_card_id == to_card_id:
        raise ValidationError("Source and target cards must be different")

    async with locks.hold(from_card_id, to_card_id):
        from_card = await card_store.get_by_id_with_owner(db, from_card_id, for_update=True)
        if from_card is None:
            raise CardNotFoundError(from_card_id)
        to_card = await card_store.get_by_id_with_owner(db, to_card_id, for_update=True)
        if to_card is None:
            raise CardNotFoundError(to_card_id)

        if not caller.owns(from_card.owner_account_id) or not caller.owns(to_card.owner_account_id):
            raise PermissionDeniedError("Transfer allowed only between your own cards")

        today = utc_today()
        await ensure_current_status(db, from_card, today)
        await ensure_current_status(db, to_card, today)

        if from_card.status != CardStatus.ACTIVE:
            raise InvalidStateTransitionError("Source card is not active")
        if to_card.status != CardStatus.ACTIVE:
            raise InvalidStateTransitionError("Target card is not active")

        amount_cents = to_cents(amount)
        if amount_cents <= 0:
            raise ValidationError("Amount must be positive")
        if from_card.balance_cents < amount_cents:
            raise InsufficientFundsError(
                requested=from_cents(amount_cents),
                available=from_card.balance,
            )

        from_card.balance_cents -= amount_cents
        to_card.balance_cents += amount_cents

        try:
            await db.flush()
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageError("Transfer could not be committed; no balances changed") from exc

    logger.info(
        "Transfer completed: %s from card %s to card %s",
        from_cents(amount_cents),
        from_card_id,
        to_card_id,
    )


async def get_balance(db: AsyncSession, card_id: uuid.UUID, caller: Caller) -> Decimal:
    """
    Return the exact balance of one of the caller's cards.

    Raises:
        CardNotFoundError: If the card doesn't exist.
        PermissionDeniedError: If the caller doesn't own the card.
    """
    card = await get_card_or_404(db, card_id)
    await ensure_current_status(db, card)

    if not caller.owns(card.owner_account_id):
        raise PermissionDeniedError("You can only view the balance of your own cards")

    return card.balance
