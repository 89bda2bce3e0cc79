"""Notifications domain repository layer."""

from sqlalchemy import case, func
from sqlalchemy.orm import Session


def list_notifications(db: Session, *, user_id: int, limit: int, offset: int = 0, unread_only: bool = False):
    from models import Notification

    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def count_notifications(db: Session, *, user_id: int):
    """(total, unread) for a user."""
    from models import Notification

    total, unread = (
        db.query(
            func.count(Notification.id),
            func.coalesce(func.sum(case((Notification.is_read.is_(False), 1), else_=0)), 0),
        )
        .filter(Notification.user_id == user_id)
        .one()
    )
    return int(total or 0), int(unread or 0)


def mark_read(db: Session, *, user_id: int, notification_ids: list[str]) -> int:
    from models import Notification

    if not notification_ids:
        return 0
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.id.in_(notification_ids),
            Notification.is_read.is_(False),
        )
        .update({Notification.is_read: True}, synchronize_session=False)
    )


def mark_all_read(db: Session, *, user_id: int) -> int:
    from models import Notification

    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )


def is_conversation_participant(db: Session, *, conversation_id: str, user_id: int) -> bool:
    from models import ConversationParticipant

    return (
        db.query(ConversationParticipant.id)
        .filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
        .first()
        is not None
    )
