"""
Card model — a balance-bearing card owned by a user account.

A user may own many cards. Each card carries its own balance, status and
expiry date; card numbers are encrypted at rest with AES-256-GCM and only
ever leave the service masked ("**** **** **** 4242").

Status:
  ACTIVE  — usable for transfers
  BLOCKED — frozen by its owner or an admin; an admin can re-activate it
  EXPIRED — terminal; set once expiry_date has passed (lazily on access,
            and nightly by the expiry sweep)

Balance management:
  The balance is stored as integer cents, exactly like the rest of the
  money in this codebase: integers have no representation error, so
  transfers can never create or destroy a fraction of a cent. The public
  `balance` attribute is a two-place Decimal derived from the cents.

  A CHECK constraint at the database level enforces that the balance can
  never go negative, backing up the ledger's own funds check.
"""

import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.exceptions import ValidationError


CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """
    Convert a Decimal amount to integer cents.

    Raises:
        ValidationError: If the amount is not finite or has more than
            two decimal places.
    """
    amount = Decimal(amount)
    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number")
    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise ValidationError("Amount cannot have more than two decimal places")
    return int(quantized * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a two-place Decimal (1050 -> Decimal('10.50'))."""
    return (Decimal(cents) / 100).quantize(CENT)


class CardStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    EXPIRED = "EXPIRED"


class Card(Base):
    __tablename__ = "cards"

    # Database-level constraint: balance can never be negative
    __table_args__ = (
        CheckConstraint(
            "balance_cents >= 0",
            name="ck_cards_non_negative_balance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Owning account; set at creation and never reassigned
    owner_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # nonce || ciphertext || tag; see app.security.CardNumberCipher
    card_number_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    # Display name printed on the card; not an identity
    owner_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Last day the card can be used
    expiry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    status: Mapped[CardStatus] = mapped_column(
        Enum(CardStatus),
        default=CardStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    owner: Mapped["User"] = relationship(
        back_populates="cards",
    )

    @property
    def balance(self) -> Decimal:
        return from_cents(self.balance_cents)

    def is_past_expiry(self, today: date) -> bool:
        """True once today is strictly after the card's expiry date."""
        return self.expiry_date < today
