import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from portfolio_api.utils.errors import AccountError


logger = logging.getLogger(__name__)


def _error_body(request: Request, status_code: int, message, **extra) -> dict:
    return {
        "success": False,
        "message": message,
        "status_code": status_code,
        "path": str(request.url.path),
        **extra,
    }


async def account_error_handler(request: Request, exc: AccountError):
    """Render lifecycle failures with their stable status code."""
    logger.warning(f"{exc.kind.name} {exc.status_code}: {exc.message} - {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.status_code, exc.message))


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()} - {request.url.path}")
    return JSONResponse(
        status_code=422,
        content=_error_body(request, 422, "Validation error", errors=jsonable_errors(exc)),
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc} - {request.url.path}", exc_info=True)
    return JSONResponse(status_code=500, content=_error_body(request, 500, "Internal server error"))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # pydantic may put exception instances in "ctx", which JSON can't carry
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]
