from dishka import Provider, Scope, provide, FromComponent
from typing import Annotated, Any, AsyncIterable
from core.environment.config import Settings
from redis.asyncio import Redis
from redis.exceptions import RedisError
import json
import logging


class RedisProvider(Provider):
    """
    Provider for Redis client.
    """

    scope = Scope.APP
    component = "redis"

    @provide(scope=Scope.APP)
    async def provide_redis_client(
        self,
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> AsyncIterable[Redis]:
        """
        Create Redis client for the application.

        Parameters
        ----------
        settings : Settings
            Application settings

        Yields
        ------
        Redis
            Redis client instance
        """
        redis_client = Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password if settings.redis_password else None,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )

        try:
            yield redis_client
        finally:
            await redis_client.aclose()


class CacheService:
    """
    JSON cache on top of Redis.

    Reads and writes never raise: the cache only saves RPC round trips, so a
    broken Redis degrades to cache misses.

    Parameters
    ----------
    redis_client : Redis
        Redis client instance
    logger : logging.Logger
        Logger instance
    """

    def __init__(self, redis_client: Redis, logger: logging.Logger):
        self.redis = redis_client
        self.logger = logger

    async def get(self, key: str) -> Any | None:
        """
        Get cached value.

        Parameters
        ----------
        key : str
            Cache key

        Returns
        -------
        Any | None
            Decoded value or None on miss
        """
        try:
            value = await self.redis.get(key)
            if value:
                return json.loads(value)
        except (RedisError, OSError, ValueError) as e:
            self.logger.debug(f"Cache read error for {key}: {e}")
        return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """
        Set cached value.

        Parameters
        ----------
        key : str
            Cache key
        value : Any
            JSON-serializable value
        ttl : int
            Time to live in seconds

        Returns
        -------
        bool
            Success status
        """
        try:
            await self.redis.setex(key, ttl, json.dumps(value))
            return True
        except (RedisError, OSError, TypeError) as e:
            self.logger.debug(f"Cache write error for {key}: {e}")
            return False


class CacheProvider(Provider):
    """
    Provider for cache service.
    """

    component = "cache"
    scope = Scope.APP

    @provide(scope=Scope.APP)
    def provide_cache_service(
        self,
        redis_client: Annotated[Redis, FromComponent("redis")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> CacheService:
        """
        Provide cache service.

        Parameters
        ----------
        redis_client : Redis
            Redis client instance
        logger : logging.Logger
            Logger instance

        Returns
        -------
        CacheService
            Cache service instance
        """
        return CacheService(redis_client, logger)
