from enum import Enum


class BaseEnum(Enum):
    @classmethod
    def choices(cls):
        return [(item.value, item.name) for item in cls]


class UserRole(BaseEnum):
    ADMIN = "admin"
    USER = "user"
    MODERATOR = "moderator"
    GUEST = "guest"
    PREMIUM = "premium"


class TokenPurpose(BaseEnum):
    """Pending single-use token kinds; each value names the account field holding it."""
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
    OTP = "otp"
