"""
Client-side typing state.

`TypingIndicator` turns raw keystrokes into at most two updates per burst:
`True` on the first keystroke and `False` once the user has been idle for the
timeout, sends the message, or leaves the conversation. `RemoteTypists` is the
receiving side: it tracks who else is typing from pushed events.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from core.config import TYPING_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

IDLE = "idle"
TYPING = "typing"


class TypingIndicator:
    def __init__(
        self,
        send: Callable[[bool], Awaitable[None]],
        *,
        timeout: float = TYPING_TIMEOUT_SECONDS,
    ):
        self._send = send
        self._timeout = timeout
        self._state = IDLE
        self._timer: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def state(self) -> str:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    async def keystroke(self) -> None:
        if self._closed:
            return
        if self._state == IDLE:
            self._state = TYPING
            await self._send(True)
        self._restart_timer()

    async def message_sent(self) -> None:
        self._cancel_timer()
        await self._go_idle()

    async def close(self) -> None:
        """Leaving the conversation. No update is sent after this."""
        if self._closed:
            return
        self._cancel_timer()
        await self._go_idle()
        self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._expire())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _expire(self) -> None:
        await asyncio.sleep(self._timeout)
        self._timer = None
        await self._go_idle()

    async def _go_idle(self) -> None:
        if self._state != TYPING:
            return
        self._state = IDLE
        await self._send(False)


class RemoteTypists:
    """Who else is typing in one conversation. Events from the local user are ignored."""

    def __init__(self, local_user_id: int, *, timeout: float = TYPING_TIMEOUT_SECONDS, clock=time.monotonic):
        self.local_user_id = local_user_id
        self._timeout = timeout
        self._clock = clock
        self._last_seen: Dict[int, float] = {}

    def apply(self, user_id: int, is_typing: bool) -> None:
        if user_id == self.local_user_id:
            return
        if is_typing:
            self._last_seen[user_id] = self._clock()
        else:
            self._last_seen.pop(user_id, None)

    def active(self) -> List[int]:
        cutoff = self._clock() - self._timeout
        # a typist whose client vanished without sending False drops out after the timeout
        stale = [uid for uid, seen in self._last_seen.items() if seen < cutoff]
        for uid in stale:
            del self._last_seen[uid]
        return sorted(self._last_seen)
