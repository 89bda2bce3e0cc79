"""
Green Buddy chat session with a local history cache.

History lives in a JSON file under a fixed key so a restart shows the previous
conversation without calling the backend. Only the most recent messages are kept.
"""

import json
import logging
import os
import uuid
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional

from core.config import CHAT_HISTORY_MAX_MESSAGES, CHAT_HISTORY_PATH
from core.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

STORAGE_KEY = "green-buddy-chat-history"


def new_message(role: str, content: str) -> Dict[str, str]:
    return {
        "id": str(uuid.uuid4()),
        "role": role,
        "content": content,
        "timestamp": datetime.utcnow().isoformat(),
    }


def _is_message(item) -> bool:
    return (
        isinstance(item, dict)
        and item.get("role") in ("user", "assistant")
        and isinstance(item.get("content"), str)
    )


class ChatHistoryStore:
    def __init__(self, path: str = CHAT_HISTORY_PATH, *, max_messages: int = CHAT_HISTORY_MAX_MESSAGES):
        self.path = path
        self.max_messages = max_messages

    def _read_all(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable chat history at {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> List[Dict[str, str]]:
        """Saved messages, oldest first. Corrupt data yields an empty history."""
        messages = self._read_all().get(STORAGE_KEY)
        if not isinstance(messages, list) or not all(_is_message(m) for m in messages):
            if messages is not None:
                logger.warning("Discarding corrupt chat history")
            return []
        return messages[-self.max_messages:]

    def save(self, messages: List[Dict[str, str]]) -> None:
        data = self._read_all()
        data[STORAGE_KEY] = list(messages)[-self.max_messages:]
        self._write(data)

    def clear(self) -> None:
        data = self._read_all()
        if data.pop(STORAGE_KEY, None) is not None:
            self._write(data)

    def _write(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save chat history: {e}")


class GreenBuddyChat:
    """
    One chat session. `stream` is any callable returning an async iterator of reply
    pieces for a list of `{role, content}` messages, normally `ai_functions.stream_chat`.
    """

    def __init__(self, stream: Callable[[List[Dict[str, str]]], AsyncIterator[str]], store: ChatHistoryStore):
        self._stream = stream
        self.store = store
        self.messages: List[Dict[str, str]] = store.load()
        self.is_loading = False
        self.error: Optional[str] = None

    async def send(self, content: str) -> Optional[Dict[str, str]]:
        """
        Send a user message and collect the streamed reply. Returns the assistant
        message, or None when nothing was sent or the assistant failed (see `error`).
        """
        content = (content or "").strip()
        if not content or self.is_loading:
            return None

        self.error = None
        self.messages.append(new_message("user", content))
        self.store.save(self.messages)
        self.is_loading = True

        history = [{"role": m["role"], "content": m["content"]} for m in self.messages]
        reply = new_message("assistant", "")
        self.messages.append(reply)
        try:
            async for delta in self._stream(history):
                reply["content"] += delta
        except UpstreamServiceError as e:
            self.error = e.message
            # an empty reply bubble is dropped, partial text stays
            self.messages = [m for m in self.messages if m["content"] != ""]
            return None
        finally:
            self.is_loading = False
            self.store.save([m for m in self.messages if m["content"] != ""])

        if not reply["content"]:
            self.messages.remove(reply)
            return None
        return reply

    def clear(self) -> None:
        self.messages = []
        self.store.clear()
