from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer

from portfolio_api.models.user import User
from portfolio_api.services.accounts import AccountService
from portfolio_api.services.mail import Mailer, SmtpMailer
from portfolio_api.services.store import AccountStore
from portfolio_api.services.tokens import TokenPair, decode_access_token
from portfolio_api.utils.base import UserRole
from portfolio_api.utils.config import settings
from portfolio_api.utils.errors import Unauthorized


ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)


def get_account_store() -> AccountStore:
    return AccountStore()


def get_mailer() -> Mailer:
    return SmtpMailer.from_settings(settings)


def get_account_service(
    store: AccountStore = Depends(get_account_store),
    mailer: Mailer = Depends(get_mailer),
) -> AccountService:
    return AccountService(store, mailer, settings)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
    store: AccountStore = Depends(get_account_store),
) -> User:
    """Auth dependency resolving the access token from the cookie or the bearer header."""
    token = request.cookies.get(ACCESS_COOKIE) or bearer
    if not token:
        raise _unauthorized("Unauthorized request")
    try:
        claims = decode_access_token(token, settings)
    except Unauthorized:
        raise _unauthorized("Invalid access token")

    user = store.find_by_id(claims["sub"])
    if not user:
        raise _unauthorized("Invalid access token")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def set_session_cookies(response: Response, tokens: TokenPair) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.set_cookie(ACCESS_COOKIE, tokens.access_token,
                        max_age=settings.access_token_expires_minutes * 60, **options)
    response.set_cookie(REFRESH_COOKIE, tokens.refresh_token,
                        max_age=settings.refresh_token_expires_days * 24 * 3600, **options)


def clear_session_cookies(response: Response) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)
