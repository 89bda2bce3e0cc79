"""Messaging/Realtime service layer."""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Optional

from fastapi import BackgroundTasks, HTTPException, status

from core.config import MESSAGE_HISTORY_LIMIT, MESSAGING_ENABLED, TYPING_TIMEOUT_SECONDS
from core.errors import InvalidAmount
from core.notifications import create_notification, notification_payload
from core.users import display_name, require_user
from utils.chat_redis import clear_typing_event, should_emit_typing_event
from utils.ledger import TransactionType
from utils.pusher_client import conversation_channel, publish_event_sync, user_channel
from utils import wallet_ledger

from . import repository as messaging_repository

logger = logging.getLogger(__name__)

STATUS_RANK = {"sent": 0, "delivered": 1, "seen": 2}


def _require_messaging_enabled():
    if not MESSAGING_ENABLED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Messaging is disabled"
        )


def _require_conversation(db, *, conversation_id: str, user_id: int):
    conversation = messaging_repository.get_conversation_if_participant(
        db, conversation_id=conversation_id, user_id=user_id
    )
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found"
        )
    return conversation


def _require_message_access(db, *, message_id: str, user_id: int):
    message = messaging_repository.get_message(db, message_id=message_id)
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    _require_conversation(db, conversation_id=message.conversation_id, user_id=user_id)
    return message


def aggregate_status(statuses) -> str:
    """Sender-side status: the least advanced recipient decides."""
    statuses = list(statuses)
    if not statuses:
        return "sent"
    return min(statuses, key=lambda s: STATUS_RANK[s])


def group_reactions(reactions, *, viewer_id: int) -> list[dict]:
    groups = OrderedDict()
    for reaction in reactions:
        group = groups.setdefault(
            reaction.emoji, {"emoji": reaction.emoji, "count": 0, "has_reacted": False, "users": []}
        )
        group["count"] += 1
        group["users"].append(reaction.user_id)
        if reaction.user_id == viewer_id:
            group["has_reacted"] = True
    return list(groups.values())


def _publish(background_tasks: Optional[BackgroundTasks], channel: str, event: str, payload: dict) -> None:
    if background_tasks is not None:
        background_tasks.add_task(publish_event_sync, channel, event, payload)


# --- Conversations ---


def start_conversation(db, *, current_user, peer_user_id: int):
    _require_messaging_enabled()
    if peer_user_id == current_user.account_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot start a conversation with yourself"
        )
    require_user(db, account_id=peer_user_id)

    conversation = messaging_repository.find_direct_conversation(
        db, user_a=current_user.account_id, user_b=peer_user_id
    )
    created = False
    if not conversation:
        conversation = messaging_repository.create_conversation(
            db, participant_ids=[current_user.account_id, peer_user_id]
        )
        db.commit()
        created = True
        logger.info(f"Conversation {conversation.id} created by {current_user.account_id}")

    return {
        "conversation_id": conversation.id,
        "participant_ids": messaging_repository.list_participant_ids(db, conversation_id=conversation.id),
        "created": created,
    }


def list_conversations(db, *, current_user, limit: int = MESSAGE_HISTORY_LIMIT):
    _require_messaging_enabled()
    conversations = messaging_repository.list_conversations_for_user(
        db, user_id=current_user.account_id, limit=limit
    )
    return {
        "conversations": [
            {
                "conversation_id": c.id,
                "participant_ids": messaging_repository.list_participant_ids(db, conversation_id=c.id),
                "last_message_at": c.last_message_at,
                "unread_count": messaging_repository.count_unseen(
                    db, conversation_id=c.id, recipient_id=current_user.account_id
                ),
            }
            for c in conversations
        ]
    }


# --- Messages ---


def _message_payload(message, *, viewer_id: int, receipts, reactions) -> dict:
    if message.sender_id == viewer_id:
        msg_status = aggregate_status(r.status for r in receipts)
    else:
        own = next((r for r in receipts if r.recipient_id == viewer_id), None)
        msg_status = own.status if own else "sent"
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "message_type": message.message_type,
        "camly_amount": message.camly_amount,
        "status": msg_status,
        # seen implies delivered even when delivered_at was never set
        "delivered": STATUS_RANK[msg_status] >= STATUS_RANK["delivered"],
        "created_at": message.created_at,
        "reactions": group_reactions(reactions, viewer_id=viewer_id),
    }


async def send_message(
    db,
    *,
    current_user,
    conversation_id: str,
    content: Optional[str],
    message_type: str = "text",
    camly_amount: Optional[int] = None,
    background_tasks: Optional[BackgroundTasks] = None,
):
    """
    Store a message and a `sent` receipt per recipient.

    A `camly_gift` message moves the coins to the other participant in the same
    DB transaction as the message itself.
    """
    _require_messaging_enabled()
    _require_conversation(db, conversation_id=conversation_id, user_id=current_user.account_id)

    recipients = [
        uid
        for uid in messaging_repository.list_participant_ids(db, conversation_id=conversation_id)
        if uid != current_user.account_id
    ]

    if message_type == "text" and not (content or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")

    gift_notification = None
    if message_type == "camly_gift":
        if camly_amount is None:
            raise InvalidAmount()
        if len(recipients) != 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Gifts need exactly one recipient"
            )
    else:
        camly_amount = None

    now = datetime.utcnow()
    message = messaging_repository.create_message(
        db,
        conversation_id=conversation_id,
        sender_id=current_user.account_id,
        content=content,
        message_type=message_type,
        camly_amount=camly_amount,
    )

    if message_type == "camly_gift":
        receiver_id = recipients[0]
        wallet_ledger.transfer(
            db,
            sender_id=current_user.account_id,
            receiver_id=receiver_id,
            amount=camly_amount,
            transaction_type=TransactionType.GIFT,
            reference_type="message",
            reference_id=message.id,
            description="Gift via chat",
        )
        gift_notification = create_notification(
            db,
            user_id=receiver_id,
            actor_id=current_user.account_id,
            type="camly_gift",
            title="You received a gift",
            message=f"{display_name(current_user)} sent you {camly_amount:,} CAMLY",
            camly_amount=camly_amount,
            reference_type="message",
            reference_id=message.id,
        )

    messaging_repository.create_receipts(db, message_id=message.id, recipient_ids=recipients)
    messaging_repository.touch_conversation(db, conversation_id=conversation_id, now=now)
    # sending ends the sender's typing state
    messaging_repository.upsert_typing(
        db, conversation_id=conversation_id, user_id=current_user.account_id, is_typing=False, now=now
    )
    db.commit()
    await clear_typing_event(conversation_id, current_user.account_id)

    receipts = messaging_repository.list_receipts(db, message_ids=[message.id])
    payload = _message_payload(message, viewer_id=current_user.account_id, receipts=receipts, reactions=[])
    channel = conversation_channel(conversation_id)
    _publish(background_tasks, channel, "new-message", {**payload, "created_at": payload["created_at"].isoformat()})
    _publish(background_tasks, channel, "typing", {"user_id": current_user.account_id, "is_typing": False})
    if gift_notification is not None:
        _publish(background_tasks, user_channel(gift_notification.user_id), "notification", notification_payload(gift_notification))
    return payload


def get_messages(db, *, current_user, conversation_id: str, limit: int = MESSAGE_HISTORY_LIMIT, before=None):
    _require_messaging_enabled()
    _require_conversation(db, conversation_id=conversation_id, user_id=current_user.account_id)

    messages = messaging_repository.list_messages(db, conversation_id=conversation_id, limit=limit, before=before)
    ids = [m.id for m in messages]
    receipts_by_message = {}
    for receipt in messaging_repository.list_receipts(db, message_ids=ids):
        receipts_by_message.setdefault(receipt.message_id, []).append(receipt)
    reactions_by_message = {}
    for reaction in messaging_repository.list_reactions(db, message_ids=ids):
        reactions_by_message.setdefault(reaction.message_id, []).append(reaction)

    return {
        "messages": [
            _message_payload(
                m,
                viewer_id=current_user.account_id,
                receipts=receipts_by_message.get(m.id, []),
                reactions=reactions_by_message.get(m.id, []),
            )
            for m in reversed(messages)
        ]
    }


# --- Delivery / seen ---


def mark_delivered(db, *, current_user, message_id: str, background_tasks: Optional[BackgroundTasks] = None):
    """Recipient's client received the message. Idempotent; never moves a seen receipt back."""
    _require_messaging_enabled()
    message = messaging_repository.get_message(db, message_id=message_id)
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")

    receipt = messaging_repository.get_receipt(db, message_id=message_id, recipient_id=current_user.account_id)
    if not receipt:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to mark this message as delivered",
        )

    changed = messaging_repository.mark_receipt_delivered(
        db, message_id=message_id, recipient_id=current_user.account_id, now=datetime.utcnow()
    )
    db.commit()
    receipt = messaging_repository.get_receipt(db, message_id=message_id, recipient_id=current_user.account_id)

    if changed:
        _publish(
            background_tasks,
            conversation_channel(message.conversation_id),
            "message-status",
            {"message_id": message_id, "recipient_id": current_user.account_id, "status": receipt.status},
        )
    return {"message_id": message_id, "status": receipt.status, "delivered_at": receipt.delivered_at}


def mark_seen(db, *, current_user, conversation_id: str, background_tasks: Optional[BackgroundTasks] = None):
    """Viewer opened the conversation: all their unseen receipts become seen and last_read_at moves."""
    _require_messaging_enabled()
    _require_conversation(db, conversation_id=conversation_id, user_id=current_user.account_id)

    now = datetime.utcnow()
    updated = messaging_repository.mark_conversation_seen(
        db, conversation_id=conversation_id, recipient_id=current_user.account_id, now=now
    )
    messaging_repository.set_last_read(
        db, conversation_id=conversation_id, user_id=current_user.account_id, now=now
    )
    db.commit()

    if updated:
        _publish(
            background_tasks,
            conversation_channel(conversation_id),
            "messages-seen",
            {"recipient_id": current_user.account_id, "seen_at": now.isoformat()},
        )
    return {"conversation_id": conversation_id, "updated": updated, "last_read_at": now}


# --- Typing ---


async def set_typing(
    db,
    *,
    current_user,
    conversation_id: str,
    is_typing: bool,
    background_tasks: Optional[BackgroundTasks] = None,
):
    """
    Upsert the caller's typing row. Pushes are deduplicated through Redis so a burst
    of keystrokes produces one "typing" event per window.
    """
    _require_messaging_enabled()
    _require_conversation(db, conversation_id=conversation_id, user_id=current_user.account_id)

    messaging_repository.upsert_typing(
        db,
        conversation_id=conversation_id,
        user_id=current_user.account_id,
        is_typing=is_typing,
        now=datetime.utcnow(),
    )
    db.commit()

    if is_typing:
        emitted = await should_emit_typing_event(conversation_id, current_user.account_id)
    else:
        await clear_typing_event(conversation_id, current_user.account_id)
        emitted = True

    if emitted:
        _publish(
            background_tasks,
            conversation_channel(conversation_id),
            "typing",
            {"user_id": current_user.account_id, "is_typing": is_typing},
        )
    return {"conversation_id": conversation_id, "is_typing": is_typing, "emitted": bool(emitted)}


def get_typing_users(db, *, current_user, conversation_id: str, now: Optional[datetime] = None):
    """Other participants typing right now. Rows older than the timeout count as stopped."""
    _require_messaging_enabled()
    _require_conversation(db, conversation_id=conversation_id, user_id=current_user.account_id)

    now = now or datetime.utcnow()
    user_ids = messaging_repository.list_active_typists(
        db,
        conversation_id=conversation_id,
        exclude_user_id=current_user.account_id,
        fresh_after=now - timedelta(seconds=TYPING_TIMEOUT_SECONDS),
    )
    return {"conversation_id": conversation_id, "user_ids": user_ids}


def purge_stale_typing(db, *, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    removed = messaging_repository.purge_stale_typing(
        db, older_than=now - timedelta(seconds=TYPING_TIMEOUT_SECONDS)
    )
    db.commit()
    if removed:
        logger.debug(f"Purged {removed} stale typing indicators")
    return removed


# --- Reactions ---


def toggle_reaction(
    db,
    *,
    current_user,
    message_id: str,
    emoji: str,
    background_tasks: Optional[BackgroundTasks] = None,
):
    """
    Remove the caller's `emoji` reaction if present, add it otherwise.
    A concurrent duplicate add is absorbed by the unique constraint and reported as success.
    """
    _require_messaging_enabled()
    message = _require_message_access(db, message_id=message_id, user_id=current_user.account_id)

    existing = messaging_repository.get_reaction(
        db, message_id=message_id, user_id=current_user.account_id, emoji=emoji
    )
    if existing:
        messaging_repository.delete_reaction(
            db, message_id=message_id, user_id=current_user.account_id, emoji=emoji
        )
        reacted = False
    else:
        messaging_repository.insert_reaction_if_absent(
            db, message_id=message_id, user_id=current_user.account_id, emoji=emoji
        )
        reacted = True
    db.commit()

    reactions = group_reactions(
        messaging_repository.list_reactions(db, message_ids=[message_id]),
        viewer_id=current_user.account_id,
    )
    _publish(
        background_tasks,
        conversation_channel(message.conversation_id),
        "reaction-changed",
        {"message_id": message_id, "user_id": current_user.account_id, "emoji": emoji, "reacted": reacted},
    )
    return {"message_id": message_id, "emoji": emoji, "reacted": reacted, "reactions": reactions}


def get_reactions(db, *, current_user, message_id: str):
    _require_messaging_enabled()
    _require_message_access(db, message_id=message_id, user_id=current_user.account_id)
    reactions = messaging_repository.list_reactions(db, message_ids=[message_id])
    return {"message_id": message_id, "reactions": group_reactions(reactions, viewer_id=current_user.account_id)}
