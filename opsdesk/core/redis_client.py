"""Redis pub/sub client for pushing task events to connected users.

Event push is optional. With no REDIS_URL, or a URL the client cannot use,
every call is a cheap no-op that reports ``False``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from opsdesk.core.config import Constants, settings


logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

PUBLISH_ATTEMPTS = 3
PUBLISH_BASE_DELAY = 0.1


def with_retry(
    max_retries: int = PUBLISH_ATTEMPTS, base_delay: float = PUBLISH_BASE_DELAY
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry a coroutine on RedisError, doubling the pause after each failed attempt.

    The last RedisError is re-raised once max_retries attempts have failed.
    Other exceptions propagate immediately.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(1, max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except RedisError as e:
                    if attempt == max_retries:
                        logger.error("Redis operation failed after %d attempts: %s", max_retries, e)
                        raise
                    delay = base_delay * 2 ** (attempt - 1)
                    logger.warning("Redis operation failed (attempt %d): %s; retrying in %.2fs", attempt, e, delay)
                    await asyncio.sleep(delay)
            msg = "max_retries must be at least 1"
            raise ValueError(msg)

        return wrapper

    return decorator


@dataclass
class _OperationStats:
    total: int = 0
    failures: int = 0
    last_success: datetime | None = None

    def success(self) -> None:
        self.total += 1
        self.last_success = datetime.now(UTC)

    def failure(self) -> None:
        self.total += 1
        self.failures += 1


class RedisClient:
    """Pooled redis.asyncio client limited to what event push needs."""

    def __init__(self, url: str | None = None) -> None:
        self._url = settings.redis_url if url is None else url
        self._client: Redis | None = None
        self._enabled = False
        self._stats = _OperationStats()

        if not self._url:
            logger.info("REDIS_URL not set; task events will not be pushed")
            return

        try:
            pool = ConnectionPool.from_url(
                self._url,
                decode_responses=True,
                max_connections=Constants.REDIS_MAX_CONNECTIONS,
            )
        except (RedisError, ValueError) as e:
            logger.warning("Unusable REDIS_URL (%s); task events will not be pushed", e)
            return

        self._client = Redis(connection_pool=pool)
        self._enabled = True
        logger.info("Redis client ready for %s", self._url)

    @property
    def is_available(self) -> bool:
        return self._enabled and self._client is not None

    def get_health_status(self) -> dict[str, Any]:
        """Snapshot for the /health endpoint."""
        last = self._stats.last_success
        return {
            "enabled": self._enabled,
            "connected": self.is_available,
            "last_successful_operation": last.isoformat() if last else None,
            "failure_count": self._stats.failures,
            "total_operations": self._stats.total,
        }

    async def publish(self, channel: str, message: str) -> bool:
        """Publish message on channel.

        Returns:
            True once Redis accepted the message, False if push is disabled or every attempt failed
        """
        client = self._client
        if not self.is_available or client is None:
            return False

        @with_retry()
        async def attempt() -> int:
            return await client.publish(channel, message)

        try:
            subscribers = await attempt()
        except RedisError as e:
            self._stats.failure()
            logger.warning("Could not publish to %s: %s", channel, e)
            return False

        self._stats.success()
        logger.debug("Published to %s (%d subscriber(s))", channel, subscribers)
        return True

    async def ping(self) -> bool:
        client = self._client
        if not self.is_available or client is None:
            return False
        try:
            return bool(await client.ping())  # type: ignore[misc]
        except RedisError as e:
            logger.warning("Redis PING failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            logger.info("Redis client closed")


redis_client = RedisClient()
