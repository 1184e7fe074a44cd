from __future__ import annotations

import hashlib
import secrets
from datetime import datetime

from portfolio_api.models.user import SecretToken
from portfolio_api.utils.base import TokenPurpose
from portfolio_api.utils.base.constants import TOKEN_BYTES, TOKEN_EXPIRY


def hash_secret(plaintext: str) -> str:
    """SHA-256 hex digest; fine for short-lived, high-entropy, single-use secrets."""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def generate(byte_length: int) -> tuple[str, str]:
    """Return (plaintext, hash) for a fresh random secret of `byte_length` bytes."""
    plaintext = secrets.token_hex(byte_length)
    return plaintext, hash_secret(plaintext)


def issue(purpose: TokenPurpose, now: datetime) -> tuple[str, SecretToken]:
    """Mint a secret for `purpose`; only the returned SecretToken is ever stored."""
    plaintext, digest = generate(TOKEN_BYTES[purpose])
    return plaintext, SecretToken(hash=digest, expires_at=now + TOKEN_EXPIRY[purpose])
