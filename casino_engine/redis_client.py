import redis.asyncio as aioredis
from casino_engine.config import settings

_redis: aioredis.Redis = None

async def get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis

async def close_redis():
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None

async def hit_rate_limit(session_id: str) -> bool:
    """Count one request for ``session_id``; True once it is over the per-minute budget."""
    redis = await get_redis()
    key   = f"rl:{session_id}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, 60)
    return count > settings.RATE_LIMIT_PER_MINUTE
