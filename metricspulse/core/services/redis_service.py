"""
Redis service for shared webhook and throttle state.

This module provides a singleton Redis client for async operations used by
the Redis-backed idempotency cache and recalculation throttle.
"""

from __future__ import annotations

from redis.asyncio import Redis

from metricspulse.core.config import redis_logger, settings


class RedisService:
    """
    Singleton Redis service for async Redis operations.

    Operations never raise on connection problems: failures are logged and
    reported as ``None``/``False`` so callers can degrade gracefully.

    Example:
        >>> await RedisService.init("redis://localhost:6379/0")
        >>> await RedisService.set("key", "value", ttl=60)
        >>> value = await RedisService.get("key")
        >>> await RedisService.aclose()
    """

    _client: Redis | None = None
    _url: str = settings.REDIS_URL

    @classmethod
    async def init(cls, url: str | None = None) -> None:
        """
        Initialize the Redis service with the given URL.

        An existing client is closed before the new one is created.

        Args:
            url: The Redis connection URL. If None, uses settings.REDIS_URL.
        """
        if url is not None:
            cls._url = url

        await cls.aclose()

        cls._client = Redis.from_url(
            cls._url,
            encoding="utf-8",
            decode_responses=False,
        )
        redis_logger.info(f"Redis client initialized with URL: {cls._url}")

    @classmethod
    async def aclose(cls) -> None:
        """Close the Redis client connection. Safe to call when not initialized."""
        if cls._client is not None:
            try:
                await cls._client.aclose()
                redis_logger.info("Redis client closed successfully")
            except Exception as e:
                redis_logger.warning(f"Error closing Redis client: {str(e)}")
            finally:
                cls._client = None

    @classmethod
    def is_connected(cls) -> bool:
        return cls._client is not None

    @classmethod
    async def ping(cls) -> bool:
        """
        Ping the Redis server to check connectivity.

        Returns:
            bool: True if ping succeeds, False otherwise.
        """
        if cls._client is None:
            redis_logger.warning("Redis ping attempted but client not initialized")
            return False

        try:
            result = await cls._client.ping()  # type: ignore[misc]
            return bool(result)
        except Exception as e:
            redis_logger.error(f"Redis ping failed: {str(e)}")
            return False

    @classmethod
    async def get(cls, key: str) -> str | None:
        """
        Get a value from Redis by key.

        Returns:
            The value as a string if found, None otherwise.
        """
        if cls._client is None:
            redis_logger.warning(
                f"Redis get({key}) attempted but client not initialized"
            )
            return None

        try:
            value = await cls._client.get(key)
            if value is not None:
                return value.decode("utf-8") if isinstance(value, bytes) else value
            return None
        except Exception as e:
            redis_logger.error(f"Redis get({key}) failed: {str(e)}")
            return None

    @classmethod
    async def set(cls, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set a value in Redis.

        Args:
            key: The key to set.
            value: The value to store.
            ttl: Optional time-to-live in seconds.

        Returns:
            bool: True if set succeeds, False otherwise.
        """
        if cls._client is None:
            redis_logger.warning(
                f"Redis set({key}) attempted but client not initialized"
            )
            return False

        try:
            await cls._client.set(key, value, ex=ttl)
            redis_logger.debug(f"Redis set({key}) successful, TTL: {ttl}")
            return True
        except Exception as e:
            redis_logger.error(f"Redis set({key}) failed: {str(e)}")
            return False

    @classmethod
    async def set_if_not_exists(cls, key: str, value: str, ttl: int) -> bool:
        """
        Atomically set a key with a TTL only if it does not exist (SET NX EX).

        Returns:
            bool: True if the key was set, False if it already existed or on failure.
        """
        if cls._client is None:
            redis_logger.warning(
                f"Redis set_if_not_exists({key}) attempted but client not initialized"
            )
            return False

        try:
            result = await cls._client.set(key, value, ex=ttl, nx=True)
            return bool(result)
        except Exception as e:
            redis_logger.error(f"Redis set_if_not_exists({key}) failed: {str(e)}")
            return False

    @classmethod
    async def exists(cls, key: str) -> bool:
        if cls._client is None:
            redis_logger.warning(
                f"Redis exists({key}) attempted but client not initialized"
            )
            return False

        try:
            return bool(await cls._client.exists(key))
        except Exception as e:
            redis_logger.error(f"Redis exists({key}) failed: {str(e)}")
            return False

    @classmethod
    async def delete(cls, key: str) -> bool:
        if cls._client is None:
            redis_logger.warning(
                f"Redis delete({key}) attempted but client not initialized"
            )
            return False

        try:
            await cls._client.delete(key)
            return True
        except Exception as e:
            redis_logger.error(f"Redis delete({key}) failed: {str(e)}")
            return False
