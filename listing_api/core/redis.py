import redis.asyncio as redis
from typing import Optional
import logging

logger = logging.getLogger(__name__)


async def check_redis_connection(url: str) -> bool:
	"""Check if Redis is healthy"""
	client: Optional[redis.Redis] = None
	try:
		client = redis.Redis.from_url(url, socket_connect_timeout=2)
		await client.ping()
		return True
	except Exception as e:
		logger.error(f"Redis health check failed: {e}")
		return False
	finally:
		if client is not None:
			await client.aclose()
