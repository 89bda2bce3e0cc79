"""Rewards service layer: daily limits, check-in streaks, one-time content rewards."""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import HTTPException, status

from core.errors import AlreadyCheckedIn
from core.users import get_user_by_id, record_check_in
from utils.ledger import (
    ActionType,
    Currency,
    LimitKind,
    TransactionType,
    daily_limit_for,
    format_earned_message,
    reward_for,
    streak_bonus_applies,
    STREAK_BONUS_EVERY_DAYS,
)
from utils.daily_limits import count_for, get_today_limits, increment_limit, local_today, remaining
from utils.wallet_ledger import append_entry, credit

from . import repository as rewards_repository

logger = logging.getLogger(__name__)


# --- Daily limits ---


def limits_summary(db, *, current_user, today: Optional[date] = None) -> dict:
    today = today or local_today()
    limits = get_today_limits(db, current_user.account_id, today)
    summary = {"date": today.isoformat()}
    for kind in LimitKind:
        summary[kind.value] = {
            "count": count_for(limits, kind),
            "max": daily_limit_for(kind),
            "remaining": remaining(limits, kind),
        }
    return summary


def record_action(db, *, current_user, kind, today: Optional[date] = None) -> dict:
    count = increment_limit(db, current_user.account_id, kind, today)
    db.commit()
    max_count = daily_limit_for(kind)
    return {"kind": LimitKind(kind).value, "count": count, "max": max_count, "remaining": max(0, max_count - count)}


# --- Check-in ---


def check_in(db, *, current_user, today: Optional[date] = None) -> dict:
    """
    Daily check-in.

    Streak continues only when the last check-in was exactly yesterday, otherwise restarts at 1.
    Every 7th consecutive day adds the streak bonus as its own ledger row.

    Raises:
        AlreadyCheckedIn: the profile already checked in on `today`
    """
    today = today or local_today()
    profile = get_user_by_id(db, account_id=current_user.account_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    db.refresh(profile)

    if profile.last_check_in == today:
        raise AlreadyCheckedIn(user_id=profile.account_id)

    if profile.last_check_in == today - timedelta(days=1):
        new_streak = (profile.current_streak or 0) + 1
    else:
        new_streak = 1

    base_reward = reward_for(ActionType.DAILY_CHECK_IN)
    bonus = reward_for(ActionType.STREAK_7_DAY_BONUS) if streak_bonus_applies(new_streak) else 0
    total = base_reward + bonus

    if not record_check_in(db, account_id=profile.account_id, today=today, new_streak=new_streak, reward=total):
        # another request checked in between our read and the guarded update
        db.rollback()
        raise AlreadyCheckedIn(user_id=profile.account_id)

    append_entry(
        db,
        sender_id=None,
        receiver_id=profile.account_id,
        amount=base_reward,
        transaction_type=TransactionType.CHECK_IN,
        description="Daily check-in",
    )
    if bonus:
        append_entry(
            db,
            sender_id=None,
            receiver_id=profile.account_id,
            amount=bonus,
            transaction_type=TransactionType.STREAK_BONUS,
            description=f"{new_streak}-day streak bonus",
        )
    db.commit()
    db.refresh(profile)

    logger.info(
        f"Check-in: user={profile.account_id} streak={new_streak} reward={base_reward} bonus={bonus}"
    )
    message = format_earned_message(base_reward, ActionType.DAILY_CHECK_IN)
    if bonus:
        message = f"{message} {format_earned_message(bonus, ActionType.STREAK_7_DAY_BONUS)}"
    return {
        "streak": new_streak,
        "reward": total,
        "base_reward": base_reward,
        "bonus": bonus,
        "camly_balance": profile.camly_balance,
        "checked_in_at": today.isoformat(),
        "message": f"{message} Come back tomorrow to keep your streak going.",
    }


def check_in_status(db, *, current_user, today: Optional[date] = None) -> dict:
    today = today or local_today()
    profile = get_user_by_id(db, account_id=current_user.account_id)
    last = profile.last_check_in
    checked_in_today = last == today
    streak_alive = last in (today, today - timedelta(days=1))
    streak = profile.current_streak if streak_alive else 0

    next_streak = streak + 1
    days_to_bonus = STREAK_BONUS_EVERY_DAYS - (streak % STREAK_BONUS_EVERY_DAYS)
    return {
        "current_streak": streak,
        "last_check_in": last.isoformat() if last else None,
        "checked_in_today": checked_in_today,
        "next_reward": reward_for(ActionType.DAILY_CHECK_IN)
        + (reward_for(ActionType.STREAK_7_DAY_BONUS) if streak_bonus_applies(next_streak) else 0),
        "days_until_streak_bonus": days_to_bonus,
    }


# --- Content views ---


def record_view(db, *, current_user, content_id: str, reward_amount: int) -> dict:
    """
    Reward the first view of a content item per user.

    The unique (user, content) constraint decides who was first; a duplicate is
    reported as already viewed with zero points, never as an error.
    """
    inserted = rewards_repository.insert_content_view_if_absent(
        db, user_id=current_user.account_id, content_id=content_id, points_earned=reward_amount
    )
    if not inserted:
        db.rollback()
        return {"already_viewed": True, "points_awarded": 0}

    rewards_repository.bump_content_view_count(db, content_id=content_id)
    if reward_amount > 0:
        credit(
            db,
            user_id=current_user.account_id,
            amount=reward_amount,
            transaction_type=TransactionType.CONTENT_VIEW,
            currency=Currency.GREEN_POINTS,
            reference_type="educational_content",
            reference_id=content_id,
            description="Learning reward",
        )
    db.commit()
    logger.info(f"Content view: user={current_user.account_id} content={content_id} points={reward_amount}")
    return {"already_viewed": False, "points_awarded": reward_amount}


def view_content(db, *, current_user, content_id: str) -> dict:
    content = rewards_repository.get_content(db, content_id=content_id)
    if not content:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Content not found")
    result = record_view(
        db, current_user=current_user, content_id=content.id, reward_amount=content.points_reward
    )
    if result["already_viewed"]:
        result["message"] = "You already earned points for this one."
    else:
        result["message"] = f"+{result['points_awarded']} green points for learning!"
    return result


def viewed_content(db, *, current_user) -> dict:
    return {"content_ids": rewards_repository.list_viewed_content_ids(db, user_id=current_user.account_id)}
