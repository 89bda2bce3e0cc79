from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
from core.db import Base
from datetime import datetime
import random
import uuid


def generate_account_id():
    """Generate a 10-digit random unique number."""
    return int("".join(str(random.randint(0, 9)) for _ in range(10)))


def generate_uuid():
    return str(uuid.uuid4())

# =================================
#  Profiles Table
# =================================
class User(Base):
    __tablename__ = "profiles"

    account_id = Column(BigInteger, primary_key=True, unique=True, index=True, nullable=False, default=generate_account_id)
    auth_user_id = Column(String, unique=True, index=True, nullable=True)  # `sub` claim of the auth provider JWT
    email = Column(String, unique=True, index=True, nullable=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    wallet_address = Column(String, nullable=True)

    # Economy counters, only ever mutated through atomic deltas
    camly_balance = Column(Integer, nullable=False, default=0)
    green_points = Column(Integer, nullable=False, default=0)
    total_camly_claimed = Column(Integer, nullable=False, default=0)

    # Check-in state
    current_streak = Column(Integer, nullable=False, default=0)
    last_check_in = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("camly_balance >= 0", name="ck_profiles_camly_balance_non_negative"),
        CheckConstraint("green_points >= 0", name="ck_profiles_green_points_non_negative"),
    )

# =================================
#  Camly Transactions Table (append-only)
# =================================
class Transaction(Base):
    __tablename__ = "camly_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    sender_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=True, index=True)  # null for system rewards
    receiver_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=True, index=True)  # null for claims
    amount = Column(Integer, nullable=False)
    transaction_type = Column(String, nullable=False, index=True)
    currency = Column(String, nullable=False, default="camly")  # camly | green_points
    reference_type = Column(String, nullable=True)
    reference_id = Column(String, nullable=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_camly_transactions_amount_positive"),
    )

# =================================
#  Claims History Table
# =================================
class ClaimHistory(Base):
    __tablename__ = "claims_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    green_points_converted = Column(Integer, nullable=False)
    camly_received = Column(Integer, nullable=False)
    transaction_hash = Column(String, nullable=True)
    wallet_address = Column(String, nullable=True)
    status = Column(String, nullable=False, default="completed")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

# =================================
#  Daily Limits Table
# =================================
class DailyLimit(Base):
    __tablename__ = "daily_limits"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    limit_date = Column(Date, nullable=False)
    shares_count = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('user_id', 'limit_date', name='uq_daily_limits_user_date'),
    )

# =================================
#  Educational Content Tables
# =================================
class EducationalContent(Base):
    __tablename__ = "educational_content"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String, nullable=False)
    content_type = Column(String, nullable=False, default="article")  # article | infographic | video
    points_reward = Column(Integer, nullable=False, default=10)
    view_count = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class ContentView(Base):
    __tablename__ = "content_views"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    content_id = Column(String(36), ForeignKey("educational_content.id"), nullable=False)
    points_earned = Column(Integer, nullable=False, default=0)
    viewed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'content_id', name='uq_content_views_user_content'),
    )

# =================================
#  Posts & Shares
# =================================
class Post(Base):
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PostShare(Base):
    __tablename__ = "post_shares"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    original_post_id = Column(String(36), ForeignKey("posts.id"), nullable=False, index=True)
    shared_by = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    share_caption = Column(Text, nullable=True)
    visibility = Column(String, nullable=False, default="public")
    camly_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

# =================================
#  Green NFT Certificates
# =================================
class GreenNft(Base):
    __tablename__ = "green_nfts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    minted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

# =================================
#  Notifications
# =================================
class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    actor_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=True)
    type = Column(String, nullable=False)  # post_shared | camly_gift | missed_call
    title = Column(String, nullable=True)
    message = Column(String, nullable=True)
    camly_amount = Column(Integer, nullable=True)
    reference_type = Column(String, nullable=True)
    reference_id = Column(String, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

# =================================
#  Conversations & Messages
# =================================
class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    last_message_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    participants = relationship("ConversationParticipant", back_populates="conversation")


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    last_read_at = Column(DateTime, nullable=True)
    joined_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("Conversation", back_populates="participants")

    __table_args__ = (
        UniqueConstraint('conversation_id', 'user_id', name='uq_conversation_participants_conversation_user'),
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False)
    content = Column(Text, nullable=True)
    message_type = Column(String, nullable=False, default="text")  # text | camly_gift
    camly_amount = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    receipts = relationship("MessageReceipt", back_populates="message")


class MessageReceipt(Base):
    __tablename__ = "message_receipts"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String(36), ForeignKey("messages.id"), nullable=False, index=True)
    recipient_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="sent")  # sent | delivered | seen
    delivered_at = Column(DateTime, nullable=True)
    seen_at = Column(DateTime, nullable=True)

    message = relationship("Message", back_populates="receipts")

    __table_args__ = (
        UniqueConstraint('message_id', 'recipient_id', name='uq_message_receipts_message_recipient'),
    )


class MessageReaction(Base):
    __tablename__ = "message_reactions"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String(36), ForeignKey("messages.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False)
    emoji = Column(String(32), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('message_id', 'user_id', 'emoji', name='uq_message_reactions_message_user_emoji'),
    )


class TypingIndicator(Base):
    __tablename__ = "typing_indicators"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False)
    is_typing = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('conversation_id', 'user_id', name='uq_typing_indicators_conversation_user'),
    )

# =================================
#  Calls
# =================================
class Call(Base):
    __tablename__ = "calls"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    caller_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    callee_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    call_type = Column(String, nullable=False, default="voice")  # voice | video
    status = Column(String, nullable=False, default="ringing", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    answered_at = Column(DateTime, nullable=True)
    connected_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=False, default=0)


class GroupCall(Base):
    __tablename__ = "group_calls"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=True)
    host_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False)
    call_type = Column(String, nullable=False, default="voice")
    status = Column(String, nullable=False, default="active")  # active | ended
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)


class CallRecording(Base):
    __tablename__ = "call_recordings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    call_id = Column(String(36), ForeignKey("calls.id"), nullable=True, index=True)
    group_call_id = Column(String(36), ForeignKey("group_calls.id"), nullable=True, index=True)
    recorded_by = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False)
    file_url = Column(String, nullable=False)
    duration_seconds = Column(Integer, nullable=False, default=0)
    file_size_bytes = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(call_id IS NULL) <> (group_call_id IS NULL)",
            name="ck_call_recordings_single_parent",
        ),
    )

# =================================
#  Waste Scans
# =================================
class WasteScan(Base):
    __tablename__ = "waste_scans"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(BigInteger, ForeignKey("profiles.account_id"), nullable=False, index=True)
    image_url = Column(String, nullable=True)
    waste_type = Column(String, nullable=False)
    waste_type_vi = Column(String, nullable=True)
    material = Column(String, nullable=True)
    recyclable = Column(Boolean, nullable=False, default=False)
    bin_color = Column(String, nullable=False, default="black")
    disposal_instructions = Column(Text, nullable=True)
    confidence = Column(Float, nullable=False, default=0.8)
    points_earned = Column(Integer, nullable=False, default=0)
    scanned_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
