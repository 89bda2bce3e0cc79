"""Messaging/Realtime repository layer."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.db import upsert_insert


# --- Conversations ---


def get_conversation_if_participant(db: Session, *, conversation_id: str, user_id: int):
    from models import Conversation, ConversationParticipant

    return (
        db.query(Conversation)
        .join(ConversationParticipant, Conversation.id == ConversationParticipant.conversation_id)
        .filter(Conversation.id == conversation_id, ConversationParticipant.user_id == user_id)
        .first()
    )


def get_conversation(db: Session, *, conversation_id: str):
    from models import Conversation

    return db.query(Conversation).filter(Conversation.id == conversation_id).first()


def find_direct_conversation(db: Session, *, user_a: int, user_b: int):
    """The conversation holding exactly these two participants, if any."""
    from models import Conversation, ConversationParticipant

    pair_ids = (
        select(ConversationParticipant.conversation_id)
        .where(ConversationParticipant.user_id.in_([user_a, user_b]))
        .group_by(ConversationParticipant.conversation_id)
        .having(func.count(ConversationParticipant.id) == 2)
    )
    sizes = (
        select(ConversationParticipant.conversation_id)
        .group_by(ConversationParticipant.conversation_id)
        .having(func.count(ConversationParticipant.id) == 2)
    )
    return (
        db.query(Conversation)
        .filter(Conversation.id.in_(pair_ids), Conversation.id.in_(sizes))
        .first()
    )


def create_conversation(db: Session, *, participant_ids: list[int]):
    from models import Conversation, ConversationParticipant

    conversation = Conversation()
    db.add(conversation)
    db.flush()
    for user_id in participant_ids:
        db.add(ConversationParticipant(conversation_id=conversation.id, user_id=user_id))
    db.flush()
    return conversation


def list_conversations_for_user(db: Session, *, user_id: int, limit: int):
    from models import Conversation, ConversationParticipant

    return (
        db.query(Conversation)
        .join(ConversationParticipant, Conversation.id == ConversationParticipant.conversation_id)
        .filter(ConversationParticipant.user_id == user_id)
        .order_by(func.coalesce(Conversation.last_message_at, Conversation.created_at).desc())
        .limit(limit)
        .all()
    )


def list_participant_ids(db: Session, *, conversation_id: str) -> list[int]:
    from models import ConversationParticipant

    rows = (
        db.query(ConversationParticipant.user_id)
        .filter(ConversationParticipant.conversation_id == conversation_id)
        .all()
    )
    return [row[0] for row in rows]


def set_last_read(db: Session, *, conversation_id: str, user_id: int, now) -> None:
    from models import ConversationParticipant

    db.query(ConversationParticipant).filter(
        ConversationParticipant.conversation_id == conversation_id,
        ConversationParticipant.user_id == user_id,
    ).update({ConversationParticipant.last_read_at: now}, synchronize_session=False)


def touch_conversation(db: Session, *, conversation_id: str, now) -> None:
    from models import Conversation

    db.query(Conversation).filter(Conversation.id == conversation_id).update(
        {Conversation.last_message_at: now}, synchronize_session=False
    )


def count_unseen(db: Session, *, conversation_id: str, recipient_id: int) -> int:
    from models import Message, MessageReceipt

    return (
        db.query(func.count(MessageReceipt.id))
        .join(Message, Message.id == MessageReceipt.message_id)
        .filter(
            Message.conversation_id == conversation_id,
            MessageReceipt.recipient_id == recipient_id,
            MessageReceipt.status != "seen",
        )
        .scalar()
        or 0
    )


# --- Messages & receipts ---


def create_message(db: Session, *, conversation_id: str, sender_id: int, content, message_type: str, camly_amount=None):
    from models import Message

    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        message_type=message_type,
        camly_amount=camly_amount,
    )
    db.add(message)
    db.flush()
    return message


def create_receipts(db: Session, *, message_id: str, recipient_ids: list[int]) -> None:
    from models import MessageReceipt

    for recipient_id in recipient_ids:
        db.add(MessageReceipt(message_id=message_id, recipient_id=recipient_id, status="sent"))
    db.flush()


def get_message(db: Session, *, message_id: str):
    from models import Message

    return db.query(Message).filter(Message.id == message_id).first()


def list_messages(db: Session, *, conversation_id: str, limit: int, before=None):
    from models import Message

    query = db.query(Message).filter(Message.conversation_id == conversation_id)
    if before is not None:
        query = query.filter(Message.created_at < before)
    return query.order_by(Message.created_at.desc()).limit(limit).all()


def get_receipt(db: Session, *, message_id: str, recipient_id: int):
    from models import MessageReceipt

    return (
        db.query(MessageReceipt)
        .filter(MessageReceipt.message_id == message_id, MessageReceipt.recipient_id == recipient_id)
        .populate_existing()
        .first()
    )


def list_receipts(db: Session, *, message_ids: list[str]):
    from models import MessageReceipt

    if not message_ids:
        return []
    return (
        db.query(MessageReceipt)
        .filter(MessageReceipt.message_id.in_(message_ids))
        .populate_existing()
        .all()
    )


def mark_receipt_delivered(db: Session, *, message_id: str, recipient_id: int, now) -> int:
    """sent -> delivered, once. A receipt already delivered or seen is left alone."""
    from models import MessageReceipt

    return (
        db.query(MessageReceipt)
        .filter(
            MessageReceipt.message_id == message_id,
            MessageReceipt.recipient_id == recipient_id,
            MessageReceipt.status == "sent",
            MessageReceipt.delivered_at.is_(None),
        )
        .update(
            {MessageReceipt.status: "delivered", MessageReceipt.delivered_at: now},
            synchronize_session=False,
        )
    )


def mark_conversation_seen(db: Session, *, conversation_id: str, recipient_id: int, now) -> int:
    """Every not-yet-seen receipt of the recipient in the conversation -> seen."""
    from models import Message, MessageReceipt

    message_ids = select(Message.id).where(Message.conversation_id == conversation_id)
    return (
        db.query(MessageReceipt)
        .filter(
            MessageReceipt.recipient_id == recipient_id,
            MessageReceipt.status != "seen",
            MessageReceipt.message_id.in_(message_ids),
        )
        .update(
            {MessageReceipt.status: "seen", MessageReceipt.seen_at: now},
            synchronize_session=False,
        )
    )


# --- Typing indicators ---


def upsert_typing(db: Session, *, conversation_id: str, user_id: int, is_typing: bool, now) -> None:
    from models import TypingIndicator

    stmt = (
        upsert_insert(db, TypingIndicator)
        .values(conversation_id=conversation_id, user_id=user_id, is_typing=is_typing, updated_at=now)
        .on_conflict_do_update(
            index_elements=["conversation_id", "user_id"],
            set_={"is_typing": is_typing, "updated_at": now},
        )
    )
    db.execute(stmt)


def list_active_typists(db: Session, *, conversation_id: str, exclude_user_id: int, fresh_after) -> list[int]:
    from models import TypingIndicator

    rows = (
        db.query(TypingIndicator.user_id)
        .filter(
            TypingIndicator.conversation_id == conversation_id,
            TypingIndicator.user_id != exclude_user_id,
            TypingIndicator.is_typing.is_(True),
            TypingIndicator.updated_at >= fresh_after,
        )
        .order_by(TypingIndicator.updated_at.asc())
        .all()
    )
    return [row[0] for row in rows]


def purge_stale_typing(db: Session, *, older_than) -> int:
    from models import TypingIndicator

    return (
        db.query(TypingIndicator)
        .filter(TypingIndicator.updated_at < older_than)
        .delete(synchronize_session=False)
    )


# --- Reactions ---


def get_reaction(db: Session, *, message_id: str, user_id: int, emoji: str):
    from models import MessageReaction

    return (
        db.query(MessageReaction)
        .filter(
            MessageReaction.message_id == message_id,
            MessageReaction.user_id == user_id,
            MessageReaction.emoji == emoji,
        )
        .first()
    )


def delete_reaction(db: Session, *, message_id: str, user_id: int, emoji: str) -> int:
    from models import MessageReaction

    return (
        db.query(MessageReaction)
        .filter(
            MessageReaction.message_id == message_id,
            MessageReaction.user_id == user_id,
            MessageReaction.emoji == emoji,
        )
        .delete(synchronize_session=False)
    )


def insert_reaction_if_absent(db: Session, *, message_id: str, user_id: int, emoji: str) -> bool:
    from models import MessageReaction

    stmt = (
        upsert_insert(db, MessageReaction)
        .values(message_id=message_id, user_id=user_id, emoji=emoji)
        .on_conflict_do_nothing(index_elements=["message_id", "user_id", "emoji"])
    )
    return db.execute(stmt).rowcount == 1


def list_reactions(db: Session, *, message_ids: list[str]):
    from models import MessageReaction

    if not message_ids:
        return []
    return (
        db.query(MessageReaction)
        .filter(MessageReaction.message_id.in_(message_ids))
        .order_by(MessageReaction.created_at.asc(), MessageReaction.id.asc())
        .all()
    )
