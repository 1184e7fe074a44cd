from __future__ import annotations

import logging

from rq_scheduler import Scheduler
from redis import Redis

from portfolio_api.connections.mongo import close_mongo, init_mongo
from portfolio_api.connections.redis import get_redis
from portfolio_api.services.accounts import AccountService
from portfolio_api.services.mail import SmtpMailer
from portfolio_api.services.store import AccountStore
from portfolio_api.utils.config import settings


logger = logging.getLogger(__name__)

QUEUE_NAME = "scheduler"
BLOCK_SWEEP_JOB_ID = "expire-blocks-sweep"


def _redis_conn() -> Redis:
    return get_redis()


def get_scheduler() -> Scheduler:
    return Scheduler(queue_name=QUEUE_NAME, connection=_redis_conn())


def expire_blocks_job() -> int:
    """rq entrypoint: unblock accounts whose block has lapsed.

    Runs in the worker process, so it opens and closes its own Mongo connection.
    """
    init_mongo()
    try:
        service = AccountService(AccountStore(), SmtpMailer.from_settings(settings))
        unblocked = service.expire_blocks()
    finally:
        close_mongo()
    logger.info(f"Block sweep finished, {unblocked} account(s) unblocked")
    return unblocked


def register_block_sweep(scheduler: Scheduler | None = None, cron: str | None = None) -> None:
    """Install the daily block-expiry sweep, replacing any earlier registration."""
    sched = scheduler or get_scheduler()
    if BLOCK_SWEEP_JOB_ID in sched:
        sched.cancel(BLOCK_SWEEP_JOB_ID)
    sched.cron(
        cron or settings.block_sweep_cron,
        func=expire_blocks_job,
        id=BLOCK_SWEEP_JOB_ID,
        queue_name=QUEUE_NAME,
        repeat=None,
    )
    logger.info(f"Registered block sweep '{cron or settings.block_sweep_cron}'")
