"""Account lifecycle: registration, verification, sessions, password reset and blocking.

Account state is derived from the document rather than stored as an enum:

- unverified: `is_email_verified` is False, login is refused
- verified without session: no `refresh_token`
- awaiting OTP: two-factor is on and an `otp` secret is pending
- active session: `refresh_token` holds the one live refresh token
- blocked: `is_blocked` with a future `blocked_until`, orthogonal to the above

Every state change is a single `update_fields` call on the injected store, and
a consumed secret is cleared in the same write as the change it authorizes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from mongoengine import ValidationError
from pydantic import BaseModel

from portfolio_api.models.base import utcnow
from portfolio_api.models.user import User
from portfolio_api.services.mail import Mailer, otp_email, password_reset_email, verification_email
from portfolio_api.services.one_time_tokens import hash_secret, issue
from portfolio_api.services.tokens import TokenPair, create_tokens, decode_refresh_token
from portfolio_api.utils.base import TokenPurpose
from portfolio_api.utils.base.constants import BLOCK_DURATION
from portfolio_api.utils.config import Settings, settings as default_settings
from portfolio_api.utils.errors import (
    BadRequest,
    Conflict,
    DependencyFailure,
    Forbidden,
    InvalidOrExpiredToken,
    NotFound,
    PreconditionFailed,
    Unauthorized,
)


logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid user credentials"
MIN_PASSWORD_LENGTH = 6


class LoginResult(BaseModel):
    """Outcome of a login step: a full session, or a pending OTP challenge."""
    user: dict[str, Any] | None = None
    tokens: TokenPair | None = None
    otp_required: bool = False


def describe_duration(remaining: timedelta) -> str:
    total_minutes = max(int(remaining.total_seconds() // 60), 1)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    return f"{days}d {hours}h {minutes}m"


def _require(*values: Any) -> bool:
    return all(isinstance(v, str) and v.strip() for v in values)


class AccountService:
    def __init__(
        self,
        store,
        mailer: Mailer,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.mailer = mailer
        self.settings = settings
        self.clock = clock

    def _link(self, path: str, token: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/api/v1/users/{path}/{token}"

    def _load(self, account_id: str) -> User:
        user = self.store.find_by_id(account_id)
        if not user:
            raise NotFound()
        return user

    def _issue_and_send(self, user: User, purpose: TokenPurpose, build: Callable[[str], tuple[str, str]]) -> str:
        """Store a fresh secret for `purpose`, mail it, and roll it back if delivery fails."""
        plaintext, token = issue(purpose, self.clock())
        self.store.update_fields(user.id, **{purpose.value: token})

        subject, body = build(plaintext)
        if not self.mailer.send(user.email, subject, body):
            self.store.update_fields(user.id, **{purpose.value: None})
            logger.error(f"Could not deliver {purpose.value} mail for user {user.id}; pending token cleared")
            raise DependencyFailure("Error sending email")
        return plaintext

    def _find_pending(self, purpose: TokenPurpose, presented: str | None, message: str) -> User:
        # A wrong secret and a lapsed one are reported identically.
        if not presented:
            raise InvalidOrExpiredToken(message)
        user = self.store.find_by_token_hash(purpose, hash_secret(presented), self.clock())
        if not user:
            raise InvalidOrExpiredToken(message)
        return user

    def _claim(self, user: User, purpose: TokenPurpose, presented: str, message: str, **fields: Any) -> User:
        """Spend the secret found by `_find_pending` together with the change it authorizes."""
        updated = self.store.claim_token(user.id, purpose, hash_secret(presented), self.clock(), **fields)
        if not updated:
            # Spent by a concurrent request, or lapsed since the lookup.
            raise InvalidOrExpiredToken(message)
        return updated

    def _check_can_log_in(self, user: User) -> None:
        if not user.is_email_verified:
            raise PreconditionFailed("Please first verify your registered email")
        remaining = user.block_remaining(self.clock())
        if remaining is not None:
            raise Forbidden(f"You are temporarily blocked. Try again in {describe_duration(remaining)}")

    def _start_session(self, user: User) -> LoginResult:
        # Overwriting the stored refresh token revokes any other session.
        tokens = create_tokens(user, self.settings)
        updated = self.store.update_fields(user.id, refresh_token=tokens.refresh_token)
        return LoginResult(user=(updated or user).to_public(), tokens=tokens)

    def register(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
        avatar: str | None = None,
        cover_image: str | None = None,
    ) -> dict[str, Any]:
        if not _require(full_name, email, username, password):
            raise BadRequest("All fields are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise BadRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self.store.exists(username, email):
            raise Conflict("User with email or username already exists")

        user = User(
            full_name=full_name.strip(),
            email=email.strip().lower(),
            username=username.strip().lower(),
            avatar=avatar or None,
            cover_image=cover_image or None,
        )
        user.set_password(password)
        try:
            user.validate()
        except ValidationError as e:
            raise BadRequest(f"Invalid registration details: {e.message}")

        user = self.store.insert(user)
        logger.info(f"Registered user {user.id} ({user.username})")
        return user.to_public()

    def request_email_verification(self, email: str) -> str:
        if not _require(email):
            raise BadRequest("email is required")
        user = self.store.find_by_email(email)
        if not user:
            raise NotFound("Invalid registered email or user does not exist")
        if user.is_email_verified:
            raise Conflict("Email address is already verified")

        return self._issue_and_send(
            user,
            TokenPurpose.EMAIL_VERIFICATION,
            lambda token: verification_email(self.settings.app_name, self._link("email-verification", token)),
        )

    def verify_email(self, token: str) -> dict[str, Any]:
        message = "Email verification token is invalid or has been expired"
        user = self._find_pending(TokenPurpose.EMAIL_VERIFICATION, token, message)
        updated = self._claim(user, TokenPurpose.EMAIL_VERIFICATION, token, message, is_email_verified=True)
        logger.info(f"Email verified for user {user.id}")
        return updated.to_public()

    def login(self, identifier: str, password: str) -> LoginResult:
        if not _require(identifier) or not password:
            raise BadRequest("username or email and password are required")

        user = self.store.find_by_username_or_email(identifier)
        if not user:
            raise Unauthorized(INVALID_CREDENTIALS)
        self._check_can_log_in(user)
        if not user.check_password(password):
            raise Unauthorized(INVALID_CREDENTIALS)

        if user.is_two_factor_enabled:
            self._issue_and_send(user, TokenPurpose.OTP, lambda otp: otp_email(self.settings.app_name, otp))
            logger.info(f"OTP challenge sent to user {user.id}")
            return LoginResult(otp_required=True)

        logger.info(f"User {user.id} logged in")
        return self._start_session(user)

    def verify_otp_and_login(self, otp: str) -> LoginResult:
        message = "Invalid OTP or has been expired"
        user = self._find_pending(TokenPurpose.OTP, otp, message)
        # An OTP mailed to confirm the two-step toggle does not open a session.
        if not user.is_two_factor_enabled:
            raise InvalidOrExpiredToken(message)
        # The account may have been blocked while the OTP was pending.
        self._check_can_log_in(user)

        tokens = create_tokens(user, self.settings)
        updated = self._claim(user, TokenPurpose.OTP, otp, message, refresh_token=tokens.refresh_token)
        logger.info(f"User {user.id} completed two-step login")
        return LoginResult(user=updated.to_public(), tokens=tokens)

    def request_two_factor_toggle(self, account_id: str, password: str) -> str:
        user = self._load(account_id)
        if not user.check_password(password):
            raise Unauthorized(INVALID_CREDENTIALS)
        return self._issue_and_send(user, TokenPurpose.OTP, lambda otp: otp_email(self.settings.app_name, otp))

    def confirm_two_factor_toggle(self, account_id: str, otp: str) -> dict[str, Any]:
        message = "Invalid OTP or has been expired"
        user = self._find_pending(TokenPurpose.OTP, otp, message)
        if str(user.id) != str(account_id):
            raise InvalidOrExpiredToken(message)

        enabled = not user.is_two_factor_enabled
        updated = self._claim(user, TokenPurpose.OTP, otp, message, is_two_factor_enabled=enabled)
        logger.info(f"Two-step verification {'enabled' if enabled else 'disabled'} for user {user.id}")
        return updated.to_public()

    def logout(self, account_id: str) -> None:
        self.store.update_fields(account_id, refresh_token=None)

    def refresh_session(self, refresh_token: str | None) -> LoginResult:
        claims = decode_refresh_token(refresh_token, self.settings)
        user = self.store.find_by_id(claims["sub"])
        if not user:
            raise Unauthorized("Invalid refresh token")
        if refresh_token != user.refresh_token:
            logger.warning(f"Rejected stale refresh token for user {user.id}")
            raise Unauthorized("Refresh token is expired or used")
        return self._start_session(user)

    def forgot_password(self, email: str) -> str:
        if not _require(email):
            raise BadRequest("email is required")
        user = self.store.find_by_email(email)
        if not user:
            raise NotFound("Invalid registered email or user does not exist")

        return self._issue_and_send(
            user,
            TokenPurpose.PASSWORD_RESET,
            lambda token: password_reset_email(self.settings.app_name, self._link("reset-password", token)),
        )

    def reset_password(self, token: str, password: str, confirm_password: str) -> None:
        message = "Reset password token is invalid or has been expired"
        user = self._find_pending(TokenPurpose.PASSWORD_RESET, token, message)
        if not password or not confirm_password:
            raise BadRequest("Both fields are required")
        if password != confirm_password:
            raise BadRequest("Password does not match")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise BadRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user.set_password(password)
        self._claim(user, TokenPurpose.PASSWORD_RESET, token, message, password=user.password, refresh_token=None)
        logger.info(f"Password reset for user {user.id}")

    def update_account_details(self, account_id: str, full_name: str, email: str, username: str) -> dict[str, Any]:
        """Change the name, email and username; the password hash is left as stored."""
        if not _require(full_name, email, username):
            raise BadRequest("All fields are required")
        user = self._load(account_id)
        email, username = email.strip().lower(), username.strip().lower()
        try:
            User.email.validate(email)
        except ValidationError as e:
            raise BadRequest(f"Invalid account details: {e.message}")

        for holder in (self.store.find_by_username_or_email(username), self.store.find_by_email(email)):
            if holder is not None and str(holder.id) != str(user.id):
                raise Conflict("User with email or username already exists")

        updated = self.store.update_fields(user.id, full_name=full_name.strip(), email=email, username=username)
        logger.info(f"Account details updated for user {user.id}")
        return updated.to_public()

    def toggle_block(self, account_id: str) -> dict[str, Any]:
        user = self._load(account_id)
        if user.is_blocked:
            updated = self.store.update_fields(user.id, is_blocked=False, blocked_until=None)
            logger.info(f"User {user.id} unblocked")
        else:
            updated = self.store.update_fields(
                user.id,
                is_blocked=True,
                blocked_until=self.clock() + BLOCK_DURATION,
                refresh_token=None,
                otp=None,
            )
            logger.info(f"User {user.id} blocked for {describe_duration(BLOCK_DURATION)}")
        return updated.to_public()

    def expire_blocks(self) -> int:
        """Unblock every account whose block has lapsed; returns how many were unblocked."""
        unblocked = 0
        for account_id in self.store.scan_expired_blocks(self.clock()):
            try:
                self.store.update_fields(account_id, is_blocked=False, blocked_until=None)
            except Exception:
                logger.exception(f"Failed to unblock user {account_id}")
                continue
            unblocked += 1
            logger.info(f"User {account_id} has been unblocked")
        return unblocked

    def get_profile(self, account_id: str) -> dict[str, Any]:
        return self._load(account_id).to_public()
