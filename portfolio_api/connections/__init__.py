from portfolio_api.connections.mongo import mongo_lifespan
from portfolio_api.connections.redis import redis_lifespan
