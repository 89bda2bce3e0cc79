"""Notification facade.

Domains record in-app notifications through this module instead of importing the
notifications domain. Rows are added to the caller's session and commit with it.
"""

from typing import Optional

from sqlalchemy.orm import Session


def create_notification(
    db: Session,
    *,
    user_id: int,
    type: str,
    title: str,
    message: str,
    actor_id: Optional[int] = None,
    camly_amount: Optional[int] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
):
    from models import Notification

    notification = Notification(
        user_id=user_id,
        actor_id=actor_id,
        type=type,
        title=title,
        message=message,
        camly_amount=camly_amount,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
    )
    db.add(notification)
    db.flush()
    return notification


def notification_payload(notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "actor_id": notification.actor_id,
        "camly_amount": notification.camly_amount,
        "reference_type": notification.reference_type,
        "reference_id": notification.reference_id,
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }
