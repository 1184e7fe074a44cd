import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt, JWTError
from pydantic import BaseModel

from portfolio_api.utils.config import Settings, settings as default_settings
from portfolio_api.utils.errors import InvalidSignatureOrExpired


ACCESS = "access"
REFRESH = "refresh"


class TokenPair(BaseModel):
    """Pair of JWT tokens used by the client for auth and refresh."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def mint_token(
    subject: str,
    claims: dict[str, Any],
    secret: str,
    ttl: timedelta,
    token_type: str,
    algorithm: str = "HS256",
) -> str:
    """Create a signed JWT with subject, extra claims, expiration and type.

    A random `jti` keeps two tokens minted within the same second distinct,
    which the refresh rotation relies on.
    """
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "typ": token_type,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def verify_token(token: str, secret: str, token_type: str, algorithm: str = "HS256") -> dict[str, Any]:
    """Decode a JWT, checking signature, expiry and type. Raises InvalidSignatureOrExpired."""
    if not token:
        raise InvalidSignatureOrExpired("Unauthorized request")
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        raise InvalidSignatureOrExpired()
    if payload.get("typ") != token_type or not payload.get("sub"):
        raise InvalidSignatureOrExpired()
    return payload


def create_access_token(user, settings: Settings = default_settings) -> str:
    return mint_token(
        subject=str(user.id),
        claims={"email": user.email, "username": user.username, "full_name": user.full_name},
        secret=settings.access_token_secret,
        ttl=timedelta(minutes=settings.access_token_expires_minutes),
        token_type=ACCESS,
        algorithm=settings.jwt_algorithm,
    )


def create_refresh_token(user, settings: Settings = default_settings) -> str:
    return mint_token(
        subject=str(user.id),
        claims={},
        secret=settings.refresh_token_secret,
        ttl=timedelta(days=settings.refresh_token_expires_days),
        token_type=REFRESH,
        algorithm=settings.jwt_algorithm,
    )


def create_tokens(user, settings: Settings = default_settings) -> TokenPair:
    """Create access and refresh token pair for a user."""
    return TokenPair(
        access_token=create_access_token(user, settings),
        refresh_token=create_refresh_token(user, settings),
    )


def decode_access_token(token: str, settings: Settings = default_settings) -> dict[str, Any]:
    return verify_token(token, settings.access_token_secret, ACCESS, settings.jwt_algorithm)


def decode_refresh_token(token: str, settings: Settings = default_settings) -> dict[str, Any]:
    return verify_token(token, settings.refresh_token_secret, REFRESH, settings.jwt_algorithm)
