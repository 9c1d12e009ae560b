import logging
import redis.asyncio as redis
from ticketcore.core.config import REDIS_URL

logger = logging.getLogger("ticketcore.redis")


async def create_redis(url: str = REDIS_URL) -> redis.Redis:
    client = redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=30,
        retry_on_timeout=True,
        socket_connect_timeout=10,
        socket_keepalive=True
    )
    try:
        await client.ping()
    except redis.RedisError:
        # audit and notification streams degrade to log-only until redis is back
        logger.warning("Redis at %s is not reachable at startup", url)
    return client
