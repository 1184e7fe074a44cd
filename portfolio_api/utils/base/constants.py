from datetime import timedelta

from portfolio_api.utils.base.enums import TokenPurpose


EMAIL_VERIFICATION_EXPIRY = timedelta(minutes=15)
PASSWORD_RESET_EXPIRY = timedelta(minutes=15)
OTP_EXPIRY = timedelta(minutes=5)
BLOCK_DURATION = timedelta(days=2)

LINK_TOKEN_BYTES = 20
OTP_BYTES = 6

TOKEN_EXPIRY = {
    TokenPurpose.EMAIL_VERIFICATION: EMAIL_VERIFICATION_EXPIRY,
    TokenPurpose.PASSWORD_RESET: PASSWORD_RESET_EXPIRY,
    TokenPurpose.OTP: OTP_EXPIRY,
}

TOKEN_BYTES = {
    TokenPurpose.EMAIL_VERIFICATION: LINK_TOKEN_BYTES,
    TokenPurpose.PASSWORD_RESET: LINK_TOKEN_BYTES,
    TokenPurpose.OTP: OTP_BYTES,
}
