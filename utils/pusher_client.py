"""
Realtime change events over Pusher.

Clients subscribe to narrow channels (one per conversation, one per user) and
refetch their cached state on any event, so payloads stay small.
"""
import logging
from typing import Any, Dict, Optional

import pusher
from pusher.errors import PusherError

from core.config import (
    PUSHER_APP_ID,
    PUSHER_CLUSTER,
    PUSHER_ENABLED,
    PUSHER_KEY,
    PUSHER_SECRET,
)

logger = logging.getLogger(__name__)

_pusher_client: Optional[pusher.Pusher] = None


def conversation_channel(conversation_id) -> str:
    return f"private-conversation-{conversation_id}"


def user_channel(user_id) -> str:
    return f"private-user-{user_id}"


def get_pusher_client() -> Optional[pusher.Pusher]:
    """Get or create Pusher client instance"""
    global _pusher_client

    if not PUSHER_ENABLED:
        return None

    if _pusher_client is None:
        if not all([PUSHER_APP_ID, PUSHER_KEY, PUSHER_SECRET]):
            logger.warning("Pusher credentials not fully configured")
            return None
        _pusher_client = pusher.Pusher(
            app_id=PUSHER_APP_ID,
            key=PUSHER_KEY,
            secret=PUSHER_SECRET,
            cluster=PUSHER_CLUSTER,
            ssl=True,
        )
        logger.info("Pusher client initialized")

    return _pusher_client


def publish_event_sync(channel: str, event: str, data: Dict[str, Any]) -> bool:
    """
    Publish an event from a background task.
    Delivery is best effort: a failed publish is logged, the write it announces already committed.
    """
    client = get_pusher_client()
    if not client:
        logger.debug(f"Pusher not available, {event} on {channel} not published")
        return False

    try:
        client.trigger(channel, event, data)
        return True
    except (PusherError, OSError, ValueError) as e:
        logger.error(f"Failed to publish {event} to Pusher channel {channel}: {e}")
        return False
