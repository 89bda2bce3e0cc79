"""
Clients for the two AI edge functions: waste classification and the Green Buddy chat.

Neither call is retried. A failure is raised as an UpstreamServiceError subclass
that tells rate limiting, exhausted credits and everything else apart.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx

from core.config import (
    AI_FUNCTION_TIMEOUT_SECONDS,
    CHAT_FUNCTION_NAME,
    SUPABASE_ANON_KEY,
    SUPABASE_FUNCTIONS_URL,
    WASTE_FUNCTION_NAME,
)
from core.errors import UpstreamQuotaExhausted, UpstreamRateLimited, UpstreamServiceError

logger = logging.getLogger(__name__)

BIN_COLORS = ("yellow", "blue", "black", "red")
DEFAULT_BIN_COLOR = "black"
DEFAULT_CONFIDENCE = 0.8
DONE_SENTINEL = "[DONE]"


def function_url(name: str) -> str:
    return f"{SUPABASE_FUNCTIONS_URL}/{name}"


def _headers() -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if SUPABASE_ANON_KEY:
        headers["Authorization"] = f"Bearer {SUPABASE_ANON_KEY}"
    return headers


def _error_message(body: bytes) -> Optional[str]:
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    if isinstance(data, dict):
        return data.get("message") or data.get("error")
    return None


def raise_for_upstream_status(status_code: int, body: bytes = b"") -> None:
    if status_code < 400:
        return
    message = _error_message(body)
    if status_code == 429:
        raise UpstreamRateLimited(message, upstream_status=status_code)
    if status_code == 402:
        raise UpstreamQuotaExhausted(message, upstream_status=status_code)
    raise UpstreamServiceError(message, upstream_status=status_code)


# --- Waste classification ---


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def normalize_classification(data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce the model's answer into the fields the app relies on."""
    bin_color = str(data.get("bin_color") or "").strip().lower()
    if bin_color not in BIN_COLORS:
        bin_color = DEFAULT_BIN_COLOR

    try:
        confidence = float(data.get("confidence", DEFAULT_CONFIDENCE))
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE
    confidence = min(1.0, max(0.0, confidence))

    return {
        "waste_type": data.get("waste_type") or "Unknown",
        "waste_type_vi": data.get("waste_type_vi"),
        "material": data.get("material"),
        "material_vi": data.get("material_vi"),
        "recyclable": bool(data.get("recyclable", False)),
        "bin_color": bin_color,
        "disposal_instructions": data.get("disposal_instructions"),
        "disposal_instructions_vi": data.get("disposal_instructions_vi"),
        "reuse_suggestions": list(data.get("reuse_suggestions") or []),
        "environmental_note": data.get("environmental_note"),
        "confidence": confidence,
    }


def parse_classification(body: str) -> Dict[str, Any]:
    try:
        data = json.loads(_strip_code_fences(body))
    except ValueError:
        raise UpstreamServiceError("The scanner returned an unreadable answer.")
    if not isinstance(data, dict):
        raise UpstreamServiceError("The scanner returned an unreadable answer.")
    if data.get("error"):
        raise UpstreamServiceError(str(data["error"]))
    return normalize_classification(data)


async def classify_waste(
    *,
    image_base64: Optional[str] = None,
    image_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    Ask the analyze-waste function what is in the photo.

    Raises:
        ValueError: neither an image nor an image URL was given
        UpstreamRateLimited, UpstreamQuotaExhausted, UpstreamServiceError
    """
    if not image_base64 and not image_url:
        raise ValueError("image_base64 or image_url is required")
    payload = {"image_base64": image_base64} if image_base64 else {"image_url": image_url}

    try:
        async with httpx.AsyncClient(timeout=AI_FUNCTION_TIMEOUT_SECONDS, transport=transport) as client:
            response = await client.post(function_url(WASTE_FUNCTION_NAME), json=payload, headers=_headers())
    except httpx.HTTPError as e:
        logger.error(f"Waste classification request failed: {e}")
        raise UpstreamServiceError() from e

    if response.status_code >= 400:
        logger.warning(f"Waste classification error: {response.status_code} - {response.text[:200]}")
    raise_for_upstream_status(response.status_code, response.content)
    return parse_classification(response.text)


# --- Chat stream ---


class SSEDeltaParser:
    """
    Incremental parser for `data: {...}` lines from the chat function.

    Text may arrive split anywhere. Partial lines stay buffered, and a complete line
    whose JSON does not parse yet is kept for the next read as well.
    """

    def __init__(self):
        self._buffer = ""
        self.done = False

    def feed(self, text: str) -> Tuple[List[str], bool]:
        deltas: List[str] = []
        if self.done:
            return deltas, True
        self._buffer += text

        while "\n" in self._buffer:
            line, rest = self._buffer.split("\n", 1)
            if line.endswith("\r"):
                line = line[:-1]
            if line.startswith(":") or not line.strip() or not line.startswith("data: "):
                self._buffer = rest
                continue

            data = line[6:].strip()
            if data == DONE_SENTINEL:
                self._buffer = ""
                self.done = True
                break
            try:
                parsed = json.loads(data)
            except ValueError:
                # keep the line and wait for more text
                break
            self._buffer = rest
            if not isinstance(parsed, dict):
                continue

            choices = parsed.get("choices")
            choice = choices[0] if isinstance(choices, list) and choices else None
            delta = choice.get("delta") if isinstance(choice, dict) else None
            content = delta.get("content") if isinstance(delta, dict) else None
            if content and isinstance(content, str):
                deltas.append(content)

        return deltas, self.done


async def stream_chat(
    messages: List[Dict[str, str]],
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[str]:
    """Yield the assistant's reply piece by piece."""
    parser = SSEDeltaParser()
    try:
        async with httpx.AsyncClient(timeout=AI_FUNCTION_TIMEOUT_SECONDS, transport=transport) as client:
            async with client.stream(
                "POST", function_url(CHAT_FUNCTION_NAME), json={"messages": messages}, headers=_headers()
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    logger.warning(f"Chat function error: {response.status_code}")
                    raise_for_upstream_status(response.status_code, body)

                async for text in response.aiter_text():
                    deltas, done = parser.feed(text)
                    for delta in deltas:
                        yield delta
                    if done:
                        return
                # a last line without a trailing newline
                deltas, _ = parser.feed("\n")
                for delta in deltas:
                    yield delta
    except httpx.HTTPError as e:
        logger.error(f"Chat stream failed: {e}")
        raise UpstreamServiceError() from e
