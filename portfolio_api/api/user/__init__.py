from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr

from portfolio_api.api.dependencies import (
    REFRESH_COOKIE,
    clear_session_cookies,
    get_account_service,
    get_current_user,
    set_session_cookies,
)
from portfolio_api.models.user import User
from portfolio_api.services.accounts import AccountService, LoginResult


router = APIRouter()


def _ok(message: str, data=None) -> dict:
    return {"success": True, "message": message, "data": data if data is not None else {}}


def _session(response: Response, result: LoginResult, message: str) -> dict:
    set_session_cookies(response, result.tokens)
    return _ok(message, {
        "user": result.user,
        "access_token": result.tokens.access_token,
        "refresh_token": result.tokens.refresh_token,
    })


class RegisterBody(BaseModel):
    full_name: str
    email: EmailStr
    username: str
    password: str
    avatar: str | None = None
    cover_image: str | None = None

@router.post("/register", status_code=201)
def register(body: RegisterBody, service: AccountService = Depends(get_account_service)) -> dict:
    """PUBLIC: Create an unverified account. Does not log the user in."""
    user = service.register(
        full_name=body.full_name,
        email=body.email,
        username=body.username,
        password=body.password,
        avatar=body.avatar,
        cover_image=body.cover_image,
    )
    return _ok("User registered successfully", user)


class EmailBody(BaseModel):
    email: str

@router.post("/email-verification")
def send_email_verification(body: EmailBody, service: AccountService = Depends(get_account_service)) -> dict:
    """PUBLIC: Mail a 15 minute verification link."""
    service.request_email_verification(body.email)
    return _ok("Verification email sent successfully to your registered email.")


@router.patch("/email-verification/{token}")
def verify_email(token: str, service: AccountService = Depends(get_account_service)) -> dict:
    service.verify_email(token)
    return _ok("Email verified successfully.")


@router.post("/forgot-password")
def forgot_password(body: EmailBody, service: AccountService = Depends(get_account_service)) -> dict:
    """PUBLIC: Mail a 15 minute password reset link."""
    service.forgot_password(body.email)
    return _ok("Reset password link sent successfully to your registered email.")


class ResetPasswordBody(BaseModel):
    password: str
    confirm_password: str

@router.patch("/reset-password/{token}")
def reset_password(token: str, body: ResetPasswordBody, service: AccountService = Depends(get_account_service)) -> dict:
    service.reset_password(token, body.password, body.confirm_password)
    return _ok("Password changed successfully.")


class LoginBody(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str

@router.post("/login")
def login(body: LoginBody, response: Response, service: AccountService = Depends(get_account_service)) -> dict:
    """PUBLIC: Log in with username or email; two-step accounts get an OTP instead of tokens."""
    result = service.login(body.username or body.email or "", body.password)
    if result.otp_required:
        return _ok("OTP sent successfully to your registered email", {"otp_required": True})
    return _session(response, result, "User logged in successfully")


class OtpBody(BaseModel):
    otp: str

@router.patch("/verify-otp-while-login")
def verify_otp_while_login(body: OtpBody, response: Response,
                           service: AccountService = Depends(get_account_service)) -> dict:
    result = service.verify_otp_and_login(body.otp)
    return _session(response, result, "User logged in successfully")


class RefreshBody(BaseModel):
    refresh_token: str | None = None

@router.post("/refresh")
def refresh_token(request: Request, response: Response, body: RefreshBody | None = None,
                  service: AccountService = Depends(get_account_service)) -> dict:
    """PUBLIC: Rotate the session; the presented refresh token is spent."""
    # The cookie wins over the body, matching the access token lookup
    presented = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    result = service.refresh_session(presented)
    return _session(response, result, "Access token refreshed")


@router.post("/logout")
def logout(response: Response, current_user: User = Depends(get_current_user),
           service: AccountService = Depends(get_account_service)) -> dict:
    """PROTECTED: Revoke the stored refresh token and clear session cookies."""
    service.logout(str(current_user.id))
    clear_session_cookies(response)
    return _ok("User logged out")


class PasswordBody(BaseModel):
    password: str

@router.post("/send-otp-for-two-step-verification")
def send_two_step_otp(body: PasswordBody, current_user: User = Depends(get_current_user),
                      service: AccountService = Depends(get_account_service)) -> dict:
    """PROTECTED: Re-check the password and mail an OTP that confirms the two-step toggle."""
    service.request_two_factor_toggle(str(current_user.id), body.password)
    return _ok("OTP sent successfully to your registered email.")


@router.patch("/verify-otp-for-two-step-verification")
def verify_two_step_otp(body: OtpBody, current_user: User = Depends(get_current_user),
                        service: AccountService = Depends(get_account_service)) -> dict:
    user = service.confirm_two_factor_toggle(str(current_user.id), body.otp)
    state = "enabled" if user["is_two_factor_enabled"] else "disabled"
    return _ok(f"Two-step verification has been {state} successfully.", user)


class AccountDetailsBody(BaseModel):
    full_name: str
    email: EmailStr
    username: str

@router.patch("/update-account-details")
def update_account_details(body: AccountDetailsBody, current_user: User = Depends(get_current_user),
                           service: AccountService = Depends(get_account_service)) -> dict:
    """PROTECTED: Change full name, email and username of the logged in account."""
    user = service.update_account_details(str(current_user.id), body.full_name, body.email, body.username)
    return _ok("Account details updated successfully", user)


@router.get("/profile")
def profile(current_user: User = Depends(get_current_user)) -> dict:
    return _ok("User fetched successfully", current_user.to_public())
