"""
Pydantic schemas for Card endpoints.

Card numbers are NEVER returned in API responses, neither in plaintext
nor as ciphertext. CardResponse.from_card decrypts the stored blob only to
build the masked form ("**** **** **** 1234").

Money fields are Decimals with two places and serialize as strings
("400.00"), so no client ever sees a float.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field, PlainSerializer, field_validator, model_validator

from app.models.card import Card, CardStatus
from app.security import CardNumberCipher, card_cipher
from app.services.card_store import Page


Money = Annotated[Decimal, PlainSerializer(lambda v: f"{v:.2f}", return_type=str)]


class CardCreateRequest(BaseModel):
    """Request body for POST /cards/accounts/{account_id}."""
    card_number: str = Field(
        min_length=12,
        max_length=19,
        pattern=r"^\d+$",
        description="Plaintext card number (digits only); stored encrypted",
    )
    owner_name: str = Field(min_length=1, max_length=255)
    expiry_date: date

    @field_validator("owner_name")
    @classmethod
    def owner_name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Owner name cannot be blank")
        return value


class CardResponse(BaseModel):
    """Public representation of a card (masked number, no ciphertext)."""
    id: uuid.UUID
    masked_card_number: str
    owner_name: str
    expiry_date: date
    status: CardStatus
    balance: Money

    @classmethod
    def from_card(cls, card: Card, cipher: CardNumberCipher = card_cipher) -> "CardResponse":
        return cls(
            id=card.id,
            masked_card_number=cipher.mask_encrypted(card.card_number_encrypted),
            owner_name=card.owner_name,
            expiry_date=card.expiry_date,
            status=card.status,
            balance=card.balance,
        )


class CardPageResponse(BaseModel):
    """One page of cards plus paging metadata."""
    items: list[CardResponse]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page[Card]) -> "CardPageResponse":
        return cls(
            items=[CardResponse.from_card(card) for card in page.items],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
        )


class BalanceResponse(BaseModel):
    """Response body for GET /cards/{card_id}/balance."""
    card_id: uuid.UUID
    balance: Money


class TransferRequest(BaseModel):
    """Request body for POST /cards/transfer."""
    from_card_id: uuid.UUID
    to_card_id: uuid.UUID
    amount: Decimal = Field(gt=0, decimal_places=2, description="Amount to move, e.g. 100.00")

    @model_validator(mode="after")
    def cards_must_differ(self):
        """Cannot transfer money to the same card."""
        if self.from_card_id == self.to_card_id:
            raise ValueError("Source and target cards must be different")
        return self
