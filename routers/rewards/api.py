from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from core.db import get_db
from routers.dependencies import get_current_user

from .schemas import (
    CheckInResponse,
    CheckInStatusResponse,
    ContentViewResponse,
    DailyLimitsResponse,
    RecordActionResponse,
    ViewedContentResponse,
)
from .service import check_in as service_check_in
from .service import check_in_status as service_check_in_status
from .service import limits_summary as service_limits_summary
from .service import record_action as service_record_action
from .service import view_content as service_view_content
from .service import viewed_content as service_viewed_content

router = APIRouter(prefix="/rewards", tags=["Rewards"])


@router.post("/check-in", response_model=CheckInResponse)
async def check_in(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """
    Daily check-in. Consecutive calendar days grow the streak; every 7th day adds a bonus.
    Returns 409 `already_checked_in` when called twice on the same day.
    """
    return service_check_in(db, current_user=current_user)


@router.get("/check-in", response_model=CheckInStatusResponse)
async def get_check_in_status(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_check_in_status(db, current_user=current_user)


@router.get("/limits", response_model=DailyLimitsResponse)
async def get_daily_limits(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Today's action counters with what is left of each daily cap."""
    return service_limits_summary(db, current_user=current_user)


@router.post("/limits/{kind}", response_model=RecordActionResponse)
async def record_action(
    kind: str = Path(..., pattern="^(shares|likes)$"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Count one action against today's limit (advisory; never rejected)."""
    return service_record_action(db, current_user=current_user, kind=kind)


@router.post("/content/{content_id}/view", response_model=ContentViewResponse)
async def view_content(
    content_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Reward the first view of an article, infographic or video. Repeat views earn nothing."""
    return service_view_content(db, current_user=current_user, content_id=content_id)


@router.get("/content/viewed", response_model=ViewedContentResponse)
async def get_viewed_content(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_viewed_content(db, current_user=current_user)
