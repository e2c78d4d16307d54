# checkout/db/redis.py
import redis
from checkout.core.config import settings

# Shared client for the Redis intent store. redis-py connects on the first
# command, so importing this module is free when the memory backend is used.
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
