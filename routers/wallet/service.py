"""Wallet service layer: gifts, share bonuses, NFT mint rewards, claims and history."""

import logging
from typing import Optional

from fastapi import BackgroundTasks, HTTPException, status

from core.config import TRANSACTION_HISTORY_LIMIT
from core.errors import ClaimNotEligible, InsufficientBalance
from core.notifications import create_notification, notification_payload
from core.users import add_claimed_camly, display_name, get_user_by_id, require_user
from utils.daily_limits import consume_limit
from utils.ledger import (
    MINIMUM_CLAIM_POINTS,
    ActionType,
    Currency,
    LimitKind,
    TransactionType,
    claimable_amount,
    daily_limit_for,
    format_earned_message,
    mock_transaction_hash,
    reward_for,
)
from utils.pusher_client import publish_event_sync, user_channel
from utils import wallet_ledger

from . import repository as wallet_repository

logger = logging.getLogger(__name__)


def transaction_payload(entry, *, viewer_id: int) -> dict:
    return {
        "id": entry.id,
        "transaction_type": entry.transaction_type,
        "currency": entry.currency,
        "amount": entry.amount,
        "direction": "sent" if entry.sender_id == viewer_id else "received",
        "sender_id": entry.sender_id,
        "receiver_id": entry.receiver_id,
        "reference_type": entry.reference_type,
        "reference_id": entry.reference_id,
        "description": entry.description,
        "created_at": entry.created_at,
    }


def _notify(background_tasks: Optional[BackgroundTasks], notification) -> None:
    if background_tasks is None:
        return
    background_tasks.add_task(
        publish_event_sync,
        user_channel(notification.user_id),
        "notification",
        notification_payload(notification),
    )


# --- Gifts ---


def send_gift(
    db,
    *,
    current_user,
    receiver_id: int,
    amount: int,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    message: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None,
):
    """
    Peer-to-peer camly gift. Debit, credit, ledger row and notification commit together.

    Raises:
        SelfTransfer, InvalidAmount, InsufficientBalance
    """
    require_user(db, account_id=receiver_id, detail="Recipient not found")

    entry = wallet_ledger.transfer(
        db,
        sender_id=current_user.account_id,
        receiver_id=receiver_id,
        amount=amount,
        transaction_type=TransactionType.GIFT,
        reference_type=reference_type,
        reference_id=reference_id,
        description=message or "Camly gift",
    )
    notification = create_notification(
        db,
        user_id=receiver_id,
        actor_id=current_user.account_id,
        type="camly_gift",
        title="You received a gift",
        message=f"{display_name(current_user)} sent you {amount:,} CAMLY",
        camly_amount=amount,
        reference_type=reference_type or "camly_transaction",
        reference_id=reference_id or entry.id,
    )
    db.commit()
    _notify(background_tasks, notification)

    return {
        "transaction": transaction_payload(entry, viewer_id=current_user.account_id),
        "camly_balance": wallet_ledger.get_balance(db, current_user.account_id),
        "message": f"Sent {amount:,} CAMLY!",
    }


# --- Shares ---


def share_post(
    db,
    *,
    current_user,
    post_id: str,
    caption: Optional[str] = None,
    visibility: str = "public",
    background_tasks: Optional[BackgroundTasks] = None,
    today=None,
):
    """
    Share a post. The sharer earns SHARE_POST; a different author separately earns
    SHARED_POST_BONUS and is notified. Counts against the daily share cap.

    Raises:
        DailyLimitReached: today's shares are used up
    """
    post = wallet_repository.get_post(db, post_id=post_id)
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    shares_today = consume_limit(db, current_user.account_id, LimitKind.SHARES, today)

    share_reward = reward_for(ActionType.SHARE_POST)
    share = wallet_repository.create_post_share(
        db,
        post_id=post.id,
        shared_by=current_user.account_id,
        caption=caption,
        visibility=visibility,
        camly_earned=share_reward,
    )
    wallet_ledger.credit(
        db,
        user_id=current_user.account_id,
        amount=share_reward,
        transaction_type=TransactionType.SHARE_BONUS,
        reference_type="post",
        reference_id=post.id,
        description="Shared a post",
    )

    author_bonus = 0
    notification = None
    if post.user_id != current_user.account_id:
        author_bonus = reward_for(ActionType.SHARED_POST_BONUS)
        wallet_ledger.credit(
            db,
            user_id=post.user_id,
            amount=author_bonus,
            transaction_type=TransactionType.SHARE_BONUS,
            reference_type="post",
            reference_id=post.id,
            description="Your post was shared",
        )
        notification = create_notification(
            db,
            user_id=post.user_id,
            actor_id=current_user.account_id,
            type="post_shared",
            title="Your post was shared",
            message=f"{display_name(current_user)} shared your post. +{author_bonus:,} CAMLY",
            camly_amount=author_bonus,
            reference_type="post",
            reference_id=post.id,
        )
    db.commit()
    if notification is not None:
        _notify(background_tasks, notification)

    logger.info(
        f"Post shared: post={post.id} sharer={current_user.account_id} reward={share_reward} author_bonus={author_bonus}"
    )
    return {
        "share_id": share.id,
        "camly_earned": share_reward,
        "author_bonus": author_bonus,
        "shares_today": shares_today,
        "shares_remaining": max(0, daily_limit_for(LimitKind.SHARES) - shares_today),
        "message": format_earned_message(share_reward, ActionType.SHARE_POST),
    }


# --- NFT certificates ---


def mint_nft(db, *, current_user, name: str, image_url: Optional[str] = None):
    nft = wallet_repository.create_nft(db, owner_id=current_user.account_id, name=name, image_url=image_url)
    reward = reward_for(ActionType.NFT_MINT)
    wallet_ledger.credit(
        db,
        user_id=current_user.account_id,
        amount=reward,
        transaction_type=TransactionType.NFT_MINT,
        reference_type="green_nft",
        reference_id=nft.id,
        description=f"Minted {name}",
    )
    db.commit()
    return {
        "nft_id": nft.id,
        "name": nft.name,
        "camly_earned": reward,
        "message": format_earned_message(reward, ActionType.NFT_MINT),
    }


# --- Claims ---


def claim(db, *, current_user, points: Optional[int] = None, wallet_address: Optional[str] = None):
    """
    Convert green points into camly at the fixed rate.

    Only whole coins are claimable; the remainder stays for a later claim.

    Raises:
        ClaimNotEligible: below the minimum claim
        InsufficientBalance: asked for more points than the account holds
    """
    profile = get_user_by_id(db, account_id=current_user.account_id)
    db.refresh(profile)

    requested = profile.green_points if points is None else points
    if requested > profile.green_points:
        raise InsufficientBalance(
            f"You only have {profile.green_points:,} green points.",
            user_id=profile.account_id,
        )

    amount = claimable_amount(requested)
    if amount.points == 0:
        raise ClaimNotEligible(
            f"You need at least {MINIMUM_CLAIM_POINTS} green points to claim.",
            user_id=profile.account_id,
            points=requested,
        )

    wallet_ledger.debit(
        db,
        user_id=profile.account_id,
        amount=amount.points,
        transaction_type=TransactionType.CLAIM,
        currency=Currency.GREEN_POINTS,
        description=f"Claimed {amount.coin:,} CAMLY",
    )
    add_claimed_camly(db, account_id=profile.account_id, amount=amount.coin)
    address = wallet_address or profile.wallet_address
    record = wallet_repository.create_claim(
        db,
        user_id=profile.account_id,
        green_points_converted=amount.points,
        camly_received=amount.coin,
        transaction_hash=mock_transaction_hash(),
        wallet_address=address,
    )
    db.commit()
    db.refresh(profile)

    logger.info(f"Claim: user={profile.account_id} points={amount.points} camly={amount.coin}")
    return {
        "claim_id": record.id,
        "green_points_converted": amount.points,
        "camly_received": amount.coin,
        "transaction_hash": record.transaction_hash,
        "wallet_address": address,
        "green_points": profile.green_points,
        "total_camly_claimed": profile.total_camly_claimed,
        "message": f"Claimed {amount.coin:,} CAMLY!",
    }


def list_claims(db, *, current_user, limit: int = TRANSACTION_HISTORY_LIMIT):
    return {"claims": wallet_repository.list_claims(db, user_id=current_user.account_id, limit=limit)}


# --- History & balances ---


def list_transactions(db, *, current_user, direction: str = "all", limit: int = TRANSACTION_HISTORY_LIMIT):
    entries = wallet_ledger.get_ledger_entries(
        db, current_user.account_id, direction=direction, limit=limit
    )
    return {
        "transactions": [transaction_payload(e, viewer_id=current_user.account_id) for e in entries]
    }


def transaction_stats(db, *, current_user):
    return wallet_ledger.get_transaction_stats(db, current_user.account_id)


def get_balance(db, *, current_user):
    profile = get_user_by_id(db, account_id=current_user.account_id)
    db.refresh(profile)
    preview = claimable_amount(profile.green_points)
    return {
        "camly_balance": profile.camly_balance,
        "green_points": profile.green_points,
        "total_camly_claimed": profile.total_camly_claimed,
        "claimable": {"points": preview.points, "coin": preview.coin},
        "reconciliation": [
            wallet_ledger.reconcile_balance(db, profile.account_id, currency) for currency in Currency
        ],
    }
