"""Thread store: conversation records in Redis, keyed by reply token."""
import logging

import redis.asyncio as aioredis
from pydantic import ValidationError

from mailrouter.models.schemas import ConversationThread

logger = logging.getLogger(__name__)


class ThreadStore:
    """Repository for conversation threads.

    Records expire after ``ttl_seconds``; there is no delete path.
    """

    def __init__(self, r: aioredis.Redis, ttl_seconds: int):
        """Initialize with a Redis client and the record TTL."""
        self._redis = r
        self.ttl_seconds = ttl_seconds

    async def get(self, token: str) -> ConversationThread | None:
        """Load a thread, or None when missing or unreadable."""
        raw = await self._redis.get(token)
        if not raw:
            return None
        try:
            return ConversationThread.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed thread record for token %s...", token[:8])
            return None

    async def put(self, thread: ConversationThread) -> None:
        """Save a thread, resetting its TTL."""
        await self._redis.set(thread.token, thread.to_json(), ex=self.ttl_seconds)
