from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from core.config import SCAN_HISTORY_LIMIT
from core.db import get_db
from routers.dependencies import get_current_user

from .schemas import (
    AnalyzeWasteRequest,
    AnalyzeWasteResponse,
    ChatRequest,
    ScanHistoryResponse,
    ScanStatsResponse,
)
from .service import analyze_waste as service_analyze_waste
from .service import open_chat_stream as service_open_chat_stream
from .service import scan_history as service_scan_history
from .service import scan_stats as service_scan_stats

router = APIRouter(tags=["Assistant"])


@router.post("/scanner/analyze", response_model=AnalyzeWasteResponse)
async def analyze_waste(
    request: AnalyzeWasteRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """
    Identify the waste in a photo and which bin it goes in.
    Upstream failures come back as `rate_limit` (429), `payment_required` (402) or `ai_error` (502).
    """
    return await service_analyze_waste(
        db, current_user=current_user, image_base64=request.image_base64, image_url=request.image_url
    )


@router.get("/scanner/history", response_model=ScanHistoryResponse)
async def scan_history(
    limit: int = Query(SCAN_HISTORY_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_scan_history(db, current_user=current_user, limit=limit)


@router.get("/scanner/stats", response_model=ScanStatsResponse)
async def scan_stats(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_scan_stats(db, current_user=current_user)


@router.post("/assistant/chat")
async def chat(
    request: ChatRequest,
    current_user=Depends(get_current_user),
):
    """Green Buddy. Streams `data: {...}` delta lines and ends with `data: [DONE]`."""
    body = await service_open_chat_stream([m.model_dump() for m in request.messages])
    return StreamingResponse(
        body,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
