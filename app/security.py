"""
Security utilities: password hashing, JWT tokens, and card number encryption.

This module centralizes all cryptographic operations so they're easy to
audit and update. Three concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - passlib's CryptContext wraps Argon2id and handles future scheme migration

2. JWT TOKENS (JSON Web Tokens)
   - After login, the user receives a signed JWT containing their user ID
   - The token is signed with SECRET_KEY using HS256 (HMAC-SHA256)
   - Tokens expire after ACCESS_TOKEN_EXPIRE_MINUTES (default: 30 min)

3. CARD NUMBER ENCRYPTION (AES-256-GCM)
   - Card numbers are encrypted at rest with an AEAD cipher: the GCM tag
     detects any tampering with the stored blob
   - Every encryption draws a fresh 12-byte random nonce, which is
     prepended to the ciphertext. A stored blob is therefore
     self-contained: nonce || ciphertext || 16-byte tag
   - The key is injected configuration (CARD_ENCRYPTION_KEY); there is a
     single static key and no rotation
"""

import base64
import binascii
import os
from datetime import datetime, timedelta, timezone

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from jose import jwt
from passlib.context import CryptContext

from app.config import settings
from app.exceptions import CryptoError


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password using Argon2id."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored Argon2 hash (constant time)."""
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# 2. JWT Tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Dictionary of claims to encode (must include "sub").
        expires_delta: Optional custom expiration time. Defaults to
                       ACCESS_TOKEN_EXPIRE_MINUTES from settings.

    Returns:
        An encoded JWT string.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# 3. Card number encryption (AES-256-GCM)
# ---------------------------------------------------------------------------

NONCE_LENGTH = 12
TAG_LENGTH = 16
MASK_PREFIX = "**** **** **** "
MASK_PLACEHOLDER = "****"


def generate_key() -> str:
    """Return a new random 256-bit key, URL-safe base64 encoded for the .env file."""
    return base64.urlsafe_b64encode(AESGCM.generate_key(bit_length=256)).decode()


class CardNumberCipher:
    """
    Encrypts card numbers for storage and renders them for display.

    The cipher is constructed from a base64-encoded AES key (16, 24 or 32
    bytes once decoded). Output blobs have the layout
    nonce(12) || ciphertext || tag(16); decrypt() needs nothing else.
    """

    def __init__(self, key: str | bytes):
        if isinstance(key, str):
            key = key.encode()
        try:
            raw_key = base64.urlsafe_b64decode(key)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError("Card encryption key is not valid base64") from exc
        if len(raw_key) not in (16, 24, 32):
            raise CryptoError(
                f"Card encryption key must decode to 16, 24 or 32 bytes, got {len(raw_key)}"
            )
        self._aead = AESGCM(raw_key)

    def encrypt(self, plaintext: str) -> bytes:
        """Encrypt a card number under a fresh random nonce."""
        nonce = os.urandom(NONCE_LENGTH)
        return nonce + self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)

    def decrypt(self, blob: bytes) -> str:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            CryptoError: If the blob is malformed, truncated, was encrypted
                under a different key, or has been tampered with.
        """
        if not isinstance(blob, (bytes, bytearray, memoryview)):
            raise CryptoError("Card number ciphertext must be bytes")
        blob = bytes(blob)
        if len(blob) < NONCE_LENGTH + TAG_LENGTH:
            raise CryptoError("Card number ciphertext is truncated")

        nonce, ciphertext = blob[:NONCE_LENGTH], blob[NONCE_LENGTH:]
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise CryptoError("Card number ciphertext failed authentication") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CryptoError("Card number plaintext is not valid UTF-8") from exc

    @staticmethod
    def mask(plaintext: str | None) -> str:
        """Render a card number as '**** **** **** 1234'; short input yields '****'."""
        if plaintext is None or len(plaintext) < 4:
            return MASK_PLACEHOLDER
        return MASK_PREFIX + plaintext[-4:]

    def mask_encrypted(self, blob: bytes) -> str:
        """Decrypt a stored blob and return only its masked form."""
        return self.mask(self.decrypt(blob))


# Process-wide cipher built from the configured key
card_cipher = CardNumberCipher(settings.CARD_ENCRYPTION_KEY)
