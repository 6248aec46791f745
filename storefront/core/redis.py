import redis.asyncio as redis
from storefront.core.config import settings

# Connections are opened lazily on first command
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

async def get_redis():
    return redis_client
