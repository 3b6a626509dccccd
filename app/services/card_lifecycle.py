"""
Card lifecycle service — issuance, status transitions, listing and deletion.

State machine:

    create ──> ACTIVE <──activate/unblock── BLOCKED
                 │                            ^  │
                 └────────────block───────────┘  └─ block (idempotent)

    any status ──(expiry date passed)──> EXPIRED   (terminal)

EXPIRED is only ever entered through ensure_current_status(),
expire_past_due_cards() or the nightly expiry sweep, and no operation
leads out of it: blocking or activating an expired card raises
InvalidStateTransitionError.

Lazy expiry:
  Every operation that touches a card first calls ensure_current_status().
  If the card's expiry date is before today and it isn't marked EXPIRED
  yet, the status is persisted as EXPIRED before the requested operation
  is evaluated. Listings first expire every past-due card in their scope
  (expire_past_due_cards), so a status filter never sees a stale status.
  "Today" is the UTC calendar date.

Authorization:
  The caller is passed in explicitly as a Caller (account id + role).
    - Admins may create, activate, block and delete any card and list all cards
    - Owners may read, list and block their own cards
"""

import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    AccountNotFoundError,
    CardNotFoundError,
    InvalidStateTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.card import Card, CardStatus
from app.schemas.caller import Caller
from app.security import CardNumberCipher, card_cipher
from app.services import card_store
from app.services.card_store import Page


logger = logging.getLogger(__name__)


def utc_today() -> date:
    """The current calendar date in UTC, used for every expiry comparison."""
    return datetime.now(timezone.utc).date()


async def ensure_current_status(
    db: AsyncSession,
    card: Card,
    today: date | None = None,
) -> Card:
    """
    Mark a card EXPIRED if its expiry date has passed.

    Returns the same card instance, possibly with an updated status.
    """
    today = today or utc_today()
    if card.is_past_expiry(today) and card.status != CardStatus.EXPIRED:
        card.status = CardStatus.EXPIRED
        await card_store.save(db, card)
        logger.debug("Card %s automatically marked as EXPIRED", card.id)
    return card


async def expire_past_due_cards(
    db: AsyncSession,
    today: date | None = None,
    account_id: uuid.UUID | None = None,
) -> int:
    """
    Mark every past-due card EXPIRED, optionally only one account's cards.

    Listings call this before filtering by status, so the status filter,
    the page items and the total all see the same, current statuses.
    Returns the number of cards that changed.
    """
    cards = await card_store.list_expired_not_marked(db, today or utc_today(), account_id)
    if not cards:
        return 0
    for card in cards:
        card.status = CardStatus.EXPIRED
    await card_store.save_all(db, cards)
    logger.debug("%d card(s) automatically marked as EXPIRED", len(cards))
    return len(cards)


def _require_admin(caller: Caller, action: str) -> None:
    if not caller.is_admin:
        raise PermissionDeniedError(f"Only administrators can {action}")


async def get_card_or_404(
    db: AsyncSession,
    card_id: uuid.UUID,
    with_owner: bool = False,
) -> Card:
    """Load a card or raise CardNotFoundError."""
    if with_owner:
        card = await card_store.get_by_id_with_owner(db, card_id)
    else:
        card = await card_store.get_by_id(db, card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    return card


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------

async def create_card(
    db: AsyncSession,
    caller: Caller,
    account_id: uuid.UUID,
    owner_name: str,
    expiry_date: date,
    card_number: str,
    cipher: CardNumberCipher = card_cipher,
) -> Card:
    """
    Issue a new card for an account.

    The card starts ACTIVE with a zero balance. The card number is
    encrypted before it reaches the session; the plaintext is not kept.

    Raises:
        PermissionDeniedError: If the caller is not an admin.
        AccountNotFoundError: If the owning account doesn't exist.
        ValidationError: If the expiry date is already in the past.
    """
    _require_admin(caller, "issue cards")

    if not await card_store.account_exists(db, account_id):
        raise AccountNotFoundError(account_id)

    if expiry_date < utc_today():
        raise ValidationError("Expiry date cannot be in the past")

    card = Card(
        owner_account_id=account_id,
        card_number_encrypted=cipher.encrypt(card_number),
        owner_name=owner_name.strip(),
        expiry_date=expiry_date,
        status=CardStatus.ACTIVE,
        balance_cents=0,
    )
    await card_store.save(db, card)

    logger.info("Card %s created for account %s", card.id, account_id)
    return card


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

async def block_card(db: AsyncSession, card_id: uuid.UUID, caller: Caller) -> Card:
    """
    Block a card. Admins may block any card, owners only their own.

    Blocking an already BLOCKED card succeeds and leaves it BLOCKED.

    Raises:
        CardNotFoundError: If the card doesn't exist.
        PermissionDeniedError: If a non-admin caller doesn't own the card.
        InvalidStateTransitionError: If the card is EXPIRED.
    """
    card = await get_card_or_404(db, card_id, with_owner=True)
    await ensure_current_status(db, card)

    if not caller.is_admin and not caller.owns(card.owner_account_id):
        raise PermissionDeniedError("You can only block your own cards")

    if card.status == CardStatus.EXPIRED:
        raise InvalidStateTransitionError("Cannot block an expired card")

    if card.status != CardStatus.BLOCKED:
        card.status = CardStatus.BLOCKED
        await card_store.save(db, card)

    logger.info(
        "Card %s blocked by %s",
        card_id,
        "admin" if caller.is_admin else "owner",
    )
    return card


async def activate_card(db: AsyncSession, card_id: uuid.UUID, caller: Caller) -> Card:
    """
    Activate (or unblock) a card. Admin only.

    Raises:
        PermissionDeniedError: If the caller is not an admin.
        CardNotFoundError: If the card doesn't exist.
        InvalidStateTransitionError: If the card has expired.
    """
    _require_admin(caller, "activate cards")

    card = await get_card_or_404(db, card_id)
    await ensure_current_status(db, card)

    if card.status == CardStatus.EXPIRED:
        raise InvalidStateTransitionError("Cannot activate an expired card")

    if card.status != CardStatus.ACTIVE:
        card.status = CardStatus.ACTIVE
        await card_store.save(db, card)

    logger.info("Card %s activated by admin", card_id)
    return card


async def unblock_card(db: AsyncSession, card_id: uuid.UUID, caller: Caller) -> Card:
    """Alias of activate_card(): lifting a block is an activation."""
    return await activate_card(db, card_id, caller)


async def delete_card(db: AsyncSession, card_id: uuid.UUID, caller: Caller) -> None:
    """
    Permanently delete a card. Admin only; irreversible.

    Raises:
        PermissionDeniedError: If the caller is not an admin.
        CardNotFoundError: If the card doesn't exist.
    """
    _require_admin(caller, "delete cards")

    card = await get_card_or_404(db, card_id)
    await card_store.delete(db, card)

    logger.info("Card %s deleted", card_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_card(db: AsyncSession, card_id: uuid.UUID, caller: Caller) -> Card:
    """
    Return one card to its owner or an admin.

    Access is checked before the lazy expiry check, so a denied read
    leaves someone else's card untouched.
    """
    card = await get_card_or_404(db, card_id)
    if not caller.is_admin and not caller.owns(card.owner_account_id):
        raise PermissionDeniedError("You do not have access to this card")

    return await ensure_current_status(db, card)


async def list_own_cards(
    db: AsyncSession,
    caller: Caller,
    name_filter: str | None = None,
    status_filter: CardStatus | None = None,
    page: int = 0,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
) -> Page[Card]:
    """List the caller's own cards. Past-due cards are expired before filtering."""
    await expire_past_due_cards(db, account_id=caller.account_id)
    return await card_store.list_by_owner(
        db, caller.account_id, name_filter, status_filter, page, page_size
    )


async def list_all_cards(
    db: AsyncSession,
    caller: Caller,
    name_filter: str | None = None,
    status_filter: CardStatus | None = None,
    page: int = 0,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
) -> Page[Card]:
    """[ADMIN ONLY] List every card. Past-due cards are expired before filtering."""
    _require_admin(caller, "list all cards")

    await expire_past_due_cards(db)
    return await card_store.list_all(db, name_filter, status_filter, page, page_size)
