import logging
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_api.connections import mongo_lifespan, redis_lifespan
from portfolio_api.api.admin import router as admin_router
from portfolio_api.api.user import router as user_router
from portfolio_api.api.errors import (
    account_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from portfolio_api.services.scheduler import register_block_sweep
from portfolio_api.utils.config import settings
from portfolio_api.utils.errors import AccountError


logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def combined_lifespan(app: FastAPI):
    async with AsyncExitStack() as stack:
        await stack.enter_async_context(mongo_lifespan(app))
        await stack.enter_async_context(redis_lifespan(app))
        register_block_sweep()

        yield


app = FastAPI(title="Portfolio Builder Accounts", version="0.1.0", lifespan=combined_lifespan)

app.add_exception_handler(AccountError, account_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(user_router, prefix="/api/v1/users")
app.include_router(admin_router, prefix="/api/v1/admin")
