"""
Async Redis client singleton used for the distributed per-record update lock.
Provides connection pooling and health checking.
"""
import redis.asyncio as aioredis
from typing import Optional
import logging
from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Global async Redis client instance
_async_redis_client: Optional[aioredis.Redis] = None


async def get_async_redis_client() -> aioredis.Redis:
    """
    Get or create the async Redis client singleton.
    Uses connection pooling for better performance.

    Returns:
        Async Redis client instance

    Raises:
        redis.ConnectionError: If unable to connect to Redis
    """
    global _async_redis_client

    if _async_redis_client is None:
        settings = get_settings()

        logger.info(
            f"Initializing Redis connection to {settings.redis_host}:{settings.redis_port}"
        )

        pool = aioredis.ConnectionPool(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            decode_responses=True,  # Automatically decode bytes to strings
            max_connections=20,
            socket_connect_timeout=settings.redis_socket_timeout,
            socket_timeout=settings.redis_socket_timeout,
        )
        client = aioredis.Redis(connection_pool=pool)

        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            await client.aclose()
            raise

        _async_redis_client = client
        logger.info("Redis connection established successfully")

    return _async_redis_client


async def close_redis_client() -> None:
    """
    Close the Redis client connection and cleanup resources.
    Should be called on application shutdown.
    """
    global _async_redis_client

    if _async_redis_client is not None:
        try:
            logger.info("Closing Redis connection")
            await _async_redis_client.aclose()
            logger.info("Redis connection closed successfully")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")
        finally:
            _async_redis_client = None


async def health_check() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if Redis is accessible, False otherwise
    """
    try:
        client = await get_async_redis_client()
        await client.ping()
        return True
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
