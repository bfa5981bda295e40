"""Redis client configuration and realtime insert events."""

import json
from collections.abc import AsyncGenerator
from typing import Any

import redis.asyncio as redis
import structlog
from redis.asyncio.client import PubSub

from app.config import settings

logger = structlog.get_logger()

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        client = get_redis_client()
        await client.ping()
        return True
    except Exception:
        return False


async def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RedisEventStream:
    """
    Insert events carried over Redis pub/sub.

    Each inserted row is published as ``{"type": "INSERT", "table", "record"}``
    on ``<prefix>:<table>:insert``. Listeners receive the rows of one table
    whose filter column equals a given value, in publish order.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str | None = None):
        """Initialize event stream with Redis client."""
        self.redis = redis_client
        self.prefix = prefix or settings.realtime_channel_prefix

    def channel(self, table: str) -> str:
        """Channel name carrying inserts for ``table``."""
        return f"{self.prefix}:{table}:insert"

    async def publish_insert(self, table: str, record: dict[str, Any]) -> int:
        """
        Publish an inserted row.

        Args:
            table: Table the row was inserted into
            record: Inserted row

        Returns:
            Number of listeners that received the event
        """
        payload = json.dumps({"type": "INSERT", "table": table, "record": record}, default=str)
        return await self.redis.publish(self.channel(table), payload)

    async def open(self, table: str, column: str, value: str) -> AsyncGenerator[dict[str, Any], None]:
        """
        Subscribe to inserts into ``table`` where ``column`` equals ``value``.

        The channel subscription is live when this returns, so every insert
        published afterwards is yielded by the returned iterator. Closing the
        iterator, or cancelling the task consuming it, releases the
        subscription.

        Raises:
            redis.RedisError: If the channel subscription fails
        """
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        channel = self.channel(table)
        try:
            await pubsub.subscribe(channel)
        except Exception:
            await pubsub.aclose()
            raise

        return self._records(pubsub, channel, column, value)

    async def _records(
        self,
        pubsub: PubSub,
        channel: str,
        column: str,
        value: str,
    ) -> AsyncGenerator[dict[str, Any], None]:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue

                try:
                    payload = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning("realtime_event_undecodable", channel=channel)
                    continue

                if payload.get("type") != "INSERT":
                    continue

                record = payload.get("record") or {}
                if str(record.get(column)) != str(value):
                    continue

                yield record
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
