import json

import httpx
import pytest

from core.errors import UpstreamQuotaExhausted, UpstreamRateLimited, UpstreamServiceError
from utils.ai_functions import (
    SSEDeltaParser,
    classify_waste,
    normalize_classification,
    parse_classification,
    raise_for_upstream_status,
    stream_chat,
)

CLASSIFICATION = {
    "waste_type": "Plastic bottle",
    "waste_type_vi": "Chai nhựa",
    "material": "PET",
    "recyclable": True,
    "bin_color": "Yellow",
    "disposal_instructions": "Rinse and crush before recycling",
    "reuse_suggestions": ["Planter", "Bird feeder"],
    "confidence": 0.93,
}


def _sse(*pieces, done=True):
    lines = [f"data: {json.dumps({'choices': [{'delta': {'content': p}}]})}\n" for p in pieces]
    if done:
        lines.append("data: [DONE]\n")
    return "".join(lines)


# --- Status mapping ---


def test_status_mapping():
    raise_for_upstream_status(200)

    with pytest.raises(UpstreamRateLimited) as rate_limited:
        raise_for_upstream_status(429, b'{"error": "Rate limits exceeded"}')
    assert rate_limited.value.code == "rate_limit"
    assert rate_limited.value.message == "Rate limits exceeded"

    with pytest.raises(UpstreamQuotaExhausted) as quota:
        raise_for_upstream_status(402)
    assert quota.value.code == "payment_required"

    with pytest.raises(UpstreamServiceError) as other:
        raise_for_upstream_status(500, b"<html>oops</html>")
    assert type(other.value) is UpstreamServiceError
    assert other.value.code == "ai_error"
    assert other.value.upstream_status == 500


# --- Classification ---


def test_normalize_coerces_bin_and_confidence():
    result = normalize_classification({"bin_color": "purple", "confidence": 7})
    assert result["bin_color"] == "black"
    assert result["confidence"] == 1.0
    assert result["waste_type"] == "Unknown"
    assert result["reuse_suggestions"] == []

    assert normalize_classification({"confidence": "n/a"})["confidence"] == 0.8


def test_parse_classification_strips_code_fences():
    body = "```json\n" + json.dumps(CLASSIFICATION) + "\n```"
    result = parse_classification(body)
    assert result["bin_color"] == "yellow"
    assert result["recyclable"] is True


def test_parse_classification_error_field():
    with pytest.raises(UpstreamServiceError) as exc:
        parse_classification('{"error": "No waste detected"}')
    assert exc.value.message == "No waste detected"


@pytest.mark.asyncio
async def test_classify_waste_sends_image_and_parses():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["path"] = request.url.path
        return httpx.Response(200, json=CLASSIFICATION)

    result = await classify_waste(image_base64="aGVsbG8=", transport=httpx.MockTransport(handler))

    assert seen["body"] == {"image_base64": "aGVsbG8="}
    assert seen["path"].endswith("/analyze-waste")
    assert result["waste_type"] == "Plastic bottle"
    assert result["confidence"] == 0.93


@pytest.mark.asyncio
async def test_classify_waste_requires_an_image():
    with pytest.raises(ValueError):
        await classify_waste()


@pytest.mark.asyncio
async def test_classify_waste_rate_limited():
    transport = httpx.MockTransport(lambda request: httpx.Response(429, json={"error": "slow down"}))
    with pytest.raises(UpstreamRateLimited):
        await classify_waste(image_url="https://cdn.example.com/bottle.jpg", transport=transport)


@pytest.mark.asyncio
async def test_classify_waste_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamServiceError):
        await classify_waste(image_url="https://cdn.example.com/bottle.jpg", transport=httpx.MockTransport(handler))


# --- SSE parsing ---


def test_parser_handles_lines_split_anywhere():
    stream = _sse("Hel", "lo", " there")
    parser = SSEDeltaParser()
    collected = []
    for i in range(0, len(stream), 7):
        deltas, done = parser.feed(stream[i:i + 7])
        collected.extend(deltas)

    assert "".join(collected) == "Hello there"
    assert done is True


def test_parser_skips_comments_and_blank_lines():
    parser = SSEDeltaParser()
    deltas, done = parser.feed(": keep-alive\n\n" + _sse("Hi", done=False))
    assert deltas == ["Hi"]
    assert done is False


def test_parser_ignores_text_after_done():
    parser = SSEDeltaParser()
    parser.feed("data: [DONE]\n")
    assert parser.feed(_sse("late")) == ([], True)


@pytest.mark.parametrize(
    "chunk",
    [
        '{"choices": [null]}',
        '{"choices": [{"delta": "x"}]}',
        '{"choices": [{"delta": {"content": 5}}]}',
        '{"choices": {"delta": {"content": "x"}}}',
        '{"choices": []}',
        "[1, 2]",
    ],
)
def test_parser_skips_malformed_chunks(chunk):
    parser = SSEDeltaParser()
    deltas, done = parser.feed(f"data: {chunk}\n" + _sse("ok"))
    assert deltas == ["ok"]
    assert done is True


@pytest.mark.asyncio
async def test_stream_chat_yields_deltas():
    def handler(request):
        assert json.loads(request.content)["messages"] == [{"role": "user", "content": "Where do batteries go?"}]
        return httpx.Response(200, text=_sse("Batteries go ", "in the red bin."))

    pieces = [
        piece
        async for piece in stream_chat(
            [{"role": "user", "content": "Where do batteries go?"}], transport=httpx.MockTransport(handler)
        )
    ]
    assert "".join(pieces) == "Batteries go in the red bin."


@pytest.mark.asyncio
async def test_stream_chat_without_trailing_newline():
    body = _sse("One", done=False) + 'data: {"choices": [{"delta": {"content": " two"}}]}'
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=body))

    pieces = [piece async for piece in stream_chat([], transport=transport)]
    assert pieces == ["One", " two"]


@pytest.mark.asyncio
async def test_stream_chat_quota_exhausted():
    transport = httpx.MockTransport(lambda request: httpx.Response(402, json={"error": "Payment required"}))
    with pytest.raises(UpstreamQuotaExhausted):
        async for _ in stream_chat([{"role": "user", "content": "hi"}], transport=transport):
            pass
