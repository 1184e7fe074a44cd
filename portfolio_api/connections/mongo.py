import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import certifi
from fastapi import FastAPI
from mongoengine import connect, disconnect

from portfolio_api.utils.config import settings


logger = logging.getLogger(__name__)


def init_mongo(host: str | None = None) -> None:
    connect(host=host or settings.mongo_uri, alias="default", tlsCAFile=certifi.where(), tz_aware=True)
    logger.info(f"Connected to MongoDB database '{settings.mongo_db}'")


def close_mongo() -> None:
    disconnect(alias="default")


@asynccontextmanager
async def mongo_lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_mongo()
    try:
        yield
    finally:
        close_mongo()
