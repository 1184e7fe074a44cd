from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from bson.objectid import ObjectId
from mongoengine import NotUniqueError, Q

from portfolio_api.models.base import utcnow
from portfolio_api.models.user import SecretToken, User
from portfolio_api.utils.base import TokenPurpose
from portfolio_api.utils.errors import Conflict


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def _as_stored_time(value: datetime) -> datetime:
    # BSON dates are UTC; write and compare naive UTC values so tz-aware and
    # naive clients agree.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _as_stored_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return _as_stored_time(value)
    if isinstance(value, SecretToken):
        return SecretToken(hash=value.hash, expires_at=_as_stored_time(value.expires_at))
    return value


class AccountStore:
    """Credential store over the `users` collection.

    Every write goes through `update_fields`, a single-document `$set`/`$unset`.
    """

    def find_by_id(self, account_id: str) -> User | None:
        if not account_id or not ObjectId.is_valid(str(account_id)):
            return None
        return User.objects(id=account_id).first()

    def find_by_username_or_email(self, identifier: str) -> User | None:
        value = _normalize(identifier)
        if not value:
            return None
        return User.objects(Q(username=value) | Q(email=value)).first()

    def find_by_email(self, email: str) -> User | None:
        return User.objects(email=_normalize(email)).first()

    def exists(self, username: str, email: str) -> bool:
        return User.objects(Q(username=_normalize(username)) | Q(email=_normalize(email))).first() is not None

    def insert(self, user: User) -> User:
        user.username = _normalize(user.username)
        user.email = _normalize(user.email)
        try:
            user.save()
        except NotUniqueError:
            raise Conflict("User with email or username already exists")
        return user

    def update_fields(self, account_id: str, **fields: Any) -> User | None:
        """Apply a partial update atomically; a None value unsets the field."""
        return self._modify(User.objects(id=account_id), fields)

    def claim_token(self, account_id: str, purpose: TokenPurpose, digest: str, now: datetime,
                    **fields: Any) -> User | None:
        """Spend a pending secret and apply `fields` in the same write.

        The hash and expiry are part of the filter, so of two concurrent claims
        of one secret only the first matches. Returns None when nothing matched.
        """
        field = purpose.value
        queryset = User.objects(**{
            "id": account_id,
            f"{field}__hash": digest,
            f"{field}__expires_at__gt": _as_stored_time(now),
        })
        return self._modify(queryset, {**fields, field: None})

    def _modify(self, queryset, fields: dict[str, Any]) -> User | None:
        updates: dict[str, Any] = {"set__updated_at": _as_stored_time(utcnow())}
        for name, value in fields.items():
            if value is None:
                updates[f"unset__{name}"] = True
            else:
                updates[f"set__{name}"] = _as_stored_value(value)
        try:
            return queryset.modify(new=True, **updates)
        except NotUniqueError:
            raise Conflict("User with email or username already exists")

    def find_by_token_hash(self, purpose: TokenPurpose, digest: str, now: datetime) -> User | None:
        """Account whose pending `purpose` secret has this hash and has not expired."""
        field = purpose.value
        return User.objects(**{
            f"{field}__hash": digest,
            f"{field}__expires_at__gt": _as_stored_time(now),
        }).first()

    def scan_expired_blocks(self, now: datetime) -> list[str]:
        users = User.objects(is_blocked=True, blocked_until__lte=_as_stored_time(now)).only("id")
        return [str(user.id) for user in users]
