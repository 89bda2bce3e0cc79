"""Assistant domain service layer: waste scanner and the Green Buddy chat proxy."""

import json
import logging
from typing import AsyncIterator, Dict, List, Optional

from core.config import SCAN_HISTORY_LIMIT
from core.errors import UpstreamServiceError
from utils.ai_functions import DONE_SENTINEL, classify_waste, stream_chat
from utils.ledger import ActionType, TransactionType, format_earned_message, reward_for
from utils import wallet_ledger

from . import repository as assistant_repository

logger = logging.getLogger(__name__)


# --- Scanner ---


async def analyze_waste(db, *, current_user, image_base64: Optional[str] = None, image_url: Optional[str] = None):
    """
    Classify a photo, keep the scan and credit the scan reward.
    Nothing is stored or credited when the classifier fails.
    """
    analysis = await classify_waste(image_base64=image_base64, image_url=image_url)

    reward = reward_for(ActionType.WASTE_SCAN)
    scan = assistant_repository.create_scan(
        db,
        user_id=current_user.account_id,
        image_url=image_url,
        result=analysis,
        points_earned=reward,
    )
    wallet_ledger.credit(
        db,
        user_id=current_user.account_id,
        amount=reward,
        transaction_type=TransactionType.SCAN_REWARD,
        reference_type="waste_scan",
        reference_id=scan.id,
        description=f"Scanned: {analysis.get('waste_type_vi') or analysis['waste_type']}",
    )
    db.commit()
    db.refresh(scan)
    logger.info(f"Waste scan {scan.id} by {current_user.account_id}: {analysis['waste_type']} -> {analysis['bin_color']}")

    return {
        "scan": scan,
        "analysis": analysis,
        "camly_earned": reward,
        "message": format_earned_message(reward, ActionType.WASTE_SCAN),
    }


def scan_history(db, *, current_user, limit: int = SCAN_HISTORY_LIMIT):
    return {"scans": assistant_repository.list_scans(db, user_id=current_user.account_id, limit=limit)}


def scan_stats(db, *, current_user):
    return assistant_repository.scan_stats(db, user_id=current_user.account_id)


# --- Chat ---


def sse_delta(content: str) -> str:
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]}, ensure_ascii=False)}\n\n"


async def open_chat_stream(messages: List[Dict[str, str]], *, stream=None) -> AsyncIterator[str]:
    """
    Start the upstream chat and return an SSE body iterator.

    The first piece is awaited here so an upstream refusal (429/402/5xx) raises
    before any response bytes are sent.
    """
    deltas = (stream or stream_chat)(messages)
    try:
        first = await deltas.__anext__()
    except StopAsyncIteration:
        first = None

    async def events():
        if first:
            yield sse_delta(first)
        if first is not None:
            try:
                async for delta in deltas:
                    yield sse_delta(delta)
            except UpstreamServiceError as e:
                logger.warning(f"Chat stream interrupted: {e.code}")
                yield f"data: {json.dumps({'error': e.code, 'message': e.message})}\n\n"
        yield f"data: {DONE_SENTINEL}\n\n"

    return events()
