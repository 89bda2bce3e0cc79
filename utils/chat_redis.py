import asyncio
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from core.config import REDIS_URL, TYPING_DEDUP_MS

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None
_redis_lock = asyncio.Lock()


def _typing_key(conversation_id: Any, user_id: Any) -> str:
    return f"chat:typing:{conversation_id}:{user_id}"


async def get_chat_redis() -> Optional[redis.Redis]:
    """Create or return cached Redis connection for chat features."""
    global _redis_client

    if _redis_client:
        return _redis_client

    async with _redis_lock:
        if _redis_client:
            return _redis_client
        try:
            _redis_client = redis.from_url(REDIS_URL, decode_responses=True)
            logger.info("Chat Redis client initialized")
        except (RedisError, ValueError) as exc:
            logger.error(f"Failed to initialize chat Redis client: {exc}")
            _redis_client = None
    return _redis_client


async def should_emit_typing_event(
    conversation_id: Any,
    user_id: Any,
    dedup_ms: int = TYPING_DEDUP_MS,
) -> bool:
    """
    Returns True if a "typing" push should go out. Stores a short-lived key
    so repeated keystroke upserts within the dedup window stay silent.
    Falls back to True if Redis is unavailable.
    """
    client = await get_chat_redis()
    if not client:
        return True

    try:
        return bool(await client.set(_typing_key(conversation_id, user_id), "1", px=dedup_ms, nx=True))
    except (RedisError, OSError) as exc:
        logger.warning(f"Chat Redis typing dedup error: {exc}")
        return True


async def clear_typing_event(conversation_id: Any, user_id: Any) -> None:
    """Remove cached typing flag so the next typing event fires immediately."""
    client = await get_chat_redis()
    if not client:
        return
    try:
        await client.delete(_typing_key(conversation_id, user_id))
    except (RedisError, OSError) as exc:
        logger.debug(f"Chat Redis typing cleanup failed: {exc}")
