from datetime import datetime, timedelta

from mongoengine import BooleanField, DateTimeField, EmailField, EmbeddedDocumentField, StringField

from portfolio_api.models.base import BaseDocument, BaseEmbeddedDocument, as_utc
from portfolio_api.services.auth import hash_password, verify_password
from portfolio_api.utils.base import TokenPurpose, UserRole
from portfolio_api.utils.base.constants import BLOCK_DURATION


PRIVATE_FIELDS = ["password", "refresh_token"] + [purpose.value for purpose in TokenPurpose]


class SecretToken(BaseEmbeddedDocument):
    """Embedded: a pending single-use secret.

    Fields:
    - hash (str): SHA-256 hex digest of the plaintext sent to the user
    - expires_at (datetime): the secret is unusable from this instant on
    """
    hash = StringField(required=True, null=False)
    expires_at = DateTimeField(required=True, null=False)

    def is_live(self, now: datetime) -> bool:
        return as_utc(self.expires_at) > now


class User(BaseDocument):
    """Account document.

    Fields:
    - username/email (str, unique): stored trimmed and lowercased
    - full_name (str)
    - avatar/cover_image (str|None): object-storage references
    - password (str): bcrypt hash, only written through `set_password`
    - refresh_token (str|None): the single live refresh token, cleared on logout
    - role (str): one of UserRole
    - is_email_verified/is_two_factor_enabled (bool)
    - is_blocked (bool), blocked_until (datetime|None): only set while blocked
    - email_verification/password_reset/otp (SecretToken|None): pending secrets
    """
    username = StringField(required=True, null=False)
    email = EmailField(required=True, null=False, unique=True)
    full_name = StringField(required=True, null=False)
    avatar = StringField(required=False, null=True)
    cover_image = StringField(required=False, null=True)
    password = StringField(required=True, null=False)
    refresh_token = StringField(required=False, null=True)
    role = StringField(required=True, null=False, default=UserRole.USER.value, choices=UserRole.choices())

    is_email_verified = BooleanField(required=True, null=False, default=False)
    is_two_factor_enabled = BooleanField(required=True, null=False, default=False)
    is_blocked = BooleanField(required=True, null=False, default=False)
    blocked_until = DateTimeField(required=False, null=True)

    email_verification = EmbeddedDocumentField(SecretToken, required=False, null=True)
    password_reset = EmbeddedDocumentField(SecretToken, required=False, null=True)
    otp = EmbeddedDocumentField(SecretToken, required=False, null=True)

    meta = {
        "collection": "users",
        "indexes": [
            {"fields": ["username"], "unique": True},
            {"fields": ["email"], "unique": True},
            {"fields": ["email_verification.hash"], "sparse": True},
            {"fields": ["password_reset.hash"], "sparse": True},
            {"fields": ["otp.hash"], "sparse": True},
            {"fields": ["is_blocked", "blocked_until"]},
        ],
    }

    def set_password(self, plain: str) -> str:
        self.password = hash_password(plain)
        return self.password

    def check_password(self, plain: str) -> bool:
        return verify_password(plain, self.password)

    def pending(self, purpose: TokenPurpose) -> SecretToken | None:
        return getattr(self, purpose.value)

    def block_remaining(self, now: datetime) -> timedelta | None:
        """Time left on an active block, None when login is not blocked."""
        if not self.is_blocked:
            return None
        if self.blocked_until is None:
            return BLOCK_DURATION
        remaining = as_utc(self.blocked_until) - now
        return remaining if remaining > timedelta(0) else None

    def to_public(self) -> dict:
        return self.to_output(exclude=PRIVATE_FIELDS)
