"""
Card store — every query the card services run against the database.

The lifecycle, ledger and expiry sweep never build SQL themselves; they go
through these functions, which keeps the persistence technology behind one
seam. Each function takes the caller's AsyncSession, so a service can group
several store calls into one database transaction.

Failure model:
  Any SQLAlchemyError raised by the backend (connection loss, lock
  timeouts, constraint violations) is re-raised as StorageError. The store
  never retries; callers decide whether to retry or give up.

Filtering and paging:
  - The owner-name filter is a case-insensitive substring match; None or an
    empty string means "no constraint"
  - The status filter is an exact match on CardStatus
  - Pages are zero-indexed and ordered by (created_at, id), which is stable
    across repeated queries
"""

import functools
import math
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.config import settings
from app.exceptions import StorageError, ValidationError
from app.models.card import Card, CardStatus
from app.models.user import User


T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """A single page of query results."""
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int = field(init=False)

    def __post_init__(self):
        self.total_pages = math.ceil(self.total / self.page_size) if self.total else 0


def _storage_errors(func_):
    """Re-raise backend failures from a store function as StorageError."""

    @functools.wraps(func_)
    async def wrapper(*args, **kwargs):
        try:
            return await func_(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise StorageError(f"Card storage unavailable: {exc.__class__.__name__}") from exc

    return wrapper


def _validate_paging(page: int, page_size: int) -> None:
    if page < 0:
        raise ValidationError("Page number cannot be negative")
    if page_size < 1 or page_size > settings.MAX_PAGE_SIZE:
        raise ValidationError(f"Page size must be between 1 and {settings.MAX_PAGE_SIZE}")


def _apply_filters(
    query: Select,
    name_filter: str | None,
    status_filter: CardStatus | None,
) -> Select:
    if name_filter:
        query = query.where(
            func.lower(Card.owner_name).contains(name_filter.lower(), autoescape=True)
        )
    if status_filter is not None:
        query = query.where(Card.status == status_filter)
    return query


async def _paginate(
    db: AsyncSession,
    query: Select,
    page: int,
    page_size: int,
) -> Page[Card]:
    _validate_paging(page, page_size)

    total = await db.scalar(
        select(func.count()).select_from(query.order_by(None).subquery())
    )
    result = await db.execute(
        query.order_by(Card.created_at, Card.id)
        .limit(page_size)
        .offset(page * page_size)
    )
    return Page(
        items=list(result.scalars().all()),
        total=total or 0,
        page=page,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# Single-card lookups
# ---------------------------------------------------------------------------

@_storage_errors
async def get_by_id(db: AsyncSession, card_id: uuid.UUID) -> Card | None:
    """Return the card with this id, or None."""
    return await db.get(Card, card_id)


@_storage_errors
async def get_by_id_with_owner(
    db: AsyncSession,
    card_id: uuid.UUID,
    for_update: bool = False,
) -> Card | None:
    """
    Return the card with its owner account eagerly loaded, or None.

    With for_update=True the row is locked (SELECT ... FOR UPDATE, a no-op
    on SQLite) and any copy already in the session's identity map is
    overwritten with the freshly read values.
    """
    query = (
        select(Card)
        .options(joinedload(Card.owner))
        .where(Card.id == card_id)
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)

    result = await db.execute(query)
    return result.unique().scalar_one_or_none()


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@_storage_errors
async def list_by_owner(
    db: AsyncSession,
    account_id: uuid.UUID,
    name_filter: str | None = None,
    status_filter: CardStatus | None = None,
    page: int = 0,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
) -> Page[Card]:
    """List the cards owned by one account, filtered and paginated."""
    query = select(Card).where(Card.owner_account_id == account_id)
    query = _apply_filters(query, name_filter, status_filter)
    return await _paginate(db, query, page, page_size)


@_storage_errors
async def list_all(
    db: AsyncSession,
    name_filter: str | None = None,
    status_filter: CardStatus | None = None,
    page: int = 0,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
) -> Page[Card]:
    """List every card in the system, filtered and paginated."""
    query = _apply_filters(select(Card), name_filter, status_filter)
    return await _paginate(db, query, page, page_size)


@_storage_errors
async def list_expired_not_marked(
    db: AsyncSession,
    as_of: date,
    account_id: uuid.UUID | None = None,
) -> list[Card]:
    """
    Cards whose expiry date is before as_of but whose status isn't EXPIRED yet.

    With account_id, only that account's cards are considered.
    """
    query = (
        select(Card)
        .where(Card.expiry_date < as_of)
        .where(Card.status != CardStatus.EXPIRED)
    )
    if account_id is not None:
        query = query.where(Card.owner_account_id == account_id)
    result = await db.execute(query.order_by(Card.id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@_storage_errors
async def save(db: AsyncSession, card: Card) -> Card:
    """Insert or update a card (last write wins) and flush it to the database."""
    db.add(card)
    await db.flush()
    return card


@_storage_errors
async def save_all(db: AsyncSession, cards: list[Card]) -> list[Card]:
    """Insert or update several cards in a single flush."""
    db.add_all(cards)
    await db.flush()
    return cards


@_storage_errors
async def delete(db: AsyncSession, card: Card) -> None:
    """Hard-delete a card. There is no tombstone."""
    await db.delete(card)
    await db.flush()


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@_storage_errors
async def account_exists(db: AsyncSession, account_id: uuid.UUID) -> bool:
    """True if a user account with this id exists."""
    result = await db.execute(select(User.id).where(User.id == account_id))
    return result.scalar_one_or_none() is not None
