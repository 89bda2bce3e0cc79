from fastapi import APIRouter, Depends, Form, Query
from sqlalchemy.orm import Session

from core.db import get_db
from routers.dependencies import get_current_user

from .schemas import MarkReadRequest, MarkReadResponse, NotificationListResponse
from .service import list_notifications as service_list_notifications
from .service import mark_read as service_mark_read
from .service import pusher_auth as service_pusher_auth

router = APIRouter(tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
async def get_notifications(
    limit: int = Query(50, ge=1, le=100, description="Maximum number of notifications to return"),
    offset: int = Query(0, ge=0, description="Number of notifications to skip"),
    unread_only: bool = Query(False, description="If true, only return unread notifications"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Gifts received, shares of your posts and missed calls, newest first."""
    return service_list_notifications(
        db, current_user=current_user, limit=limit, offset=offset, unread_only=unread_only
    )


@router.post("/notifications/read", response_model=MarkReadResponse)
async def mark_notifications_read(
    request: MarkReadRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_mark_read(db, current_user=current_user, notification_ids=request.notification_ids)


@router.post("/pusher/auth")
async def pusher_auth(
    socket_id: str = Form(...),
    channel_name: str = Form(...),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """
    Authenticate a Pusher subscription.

    private-conversation-{id}: the caller must be a participant.
    private-user-{id}: only the user themself.
    """
    return service_pusher_auth(db, current_user=current_user, socket_id=socket_id, channel_name=channel_name)
