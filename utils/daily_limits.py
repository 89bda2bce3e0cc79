"""
Per-user, per-day action counters (shares, likes).

One row per (user, calendar day), created lazily by the first action of the day.
Counters move through a single upsert-increment statement, so concurrent actions
never lose a count.
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from core.db import upsert_insert
from core.errors import DailyLimitReached
from models import DailyLimit
from utils.ledger import LimitKind, daily_limit_for

logger = logging.getLogger(__name__)

_LIMIT_COLUMNS = {
    LimitKind.SHARES: "shares_count",
    LimitKind.LIKES: "likes_count",
}


def local_today() -> date:
    """Server-local calendar day. Limits and streaks roll over at local midnight, not after 24h."""
    return date.today()


def limit_column(kind) -> str:
    return _LIMIT_COLUMNS[LimitKind(kind)]


def get_today_limits(db: Session, user_id: int, today: Optional[date] = None) -> Optional[DailyLimit]:
    """Today's row, or None when the user has not acted yet today (full quota remaining)."""
    return (
        db.query(DailyLimit)
        .filter(DailyLimit.user_id == user_id, DailyLimit.limit_date == (today or local_today()))
        .populate_existing()
        .first()
    )


def count_for(limits: Optional[DailyLimit], kind) -> int:
    if limits is None:
        return 0
    return getattr(limits, limit_column(kind)) or 0


def remaining(limits: Optional[DailyLimit], kind, max_count: Optional[int] = None) -> int:
    max_count = daily_limit_for(kind) if max_count is None else max_count
    return max(0, max_count - count_for(limits, kind))


def _upsert_increment(db: Session, user_id: int, today: date, kind, max_count: Optional[int] = None) -> bool:
    column_name = limit_column(kind)
    column = getattr(DailyLimit, column_name)
    values = {"user_id": user_id, "limit_date": today, "shares_count": 0, "likes_count": 0}
    values[column_name] = 1

    conflict_kwargs = {
        "index_elements": ["user_id", "limit_date"],
        "set_": {column_name: column + 1},
    }
    if max_count is not None:
        # the conflict branch only bumps while under the cap
        conflict_kwargs["where"] = column < max_count

    stmt = upsert_insert(db, DailyLimit).values(**values).on_conflict_do_update(**conflict_kwargs)
    return db.execute(stmt).rowcount == 1


def increment_limit(db: Session, user_id: int, kind, today: Optional[date] = None) -> int:
    """
    Count one action for today and return the new count.

    Advisory: the counter moves even past the cap. Callers gate on `remaining`.
    """
    today = today or local_today()
    _upsert_increment(db, user_id, today, kind)
    return count_for(get_today_limits(db, user_id, today), kind)


def consume_limit(db: Session, user_id: int, kind, today: Optional[date] = None) -> int:
    """
    Count one action only while today's count is below the cap, and return the new count.

    Raises:
        DailyLimitReached: the cap is already used up
    """
    today = today or local_today()
    max_count = daily_limit_for(kind)
    if not _upsert_increment(db, user_id, today, kind, max_count=max_count):
        logger.info(f"Daily limit reached: user={user_id} kind={LimitKind(kind).value} max={max_count}")
        raise DailyLimitReached(
            f"You've reached today's limit of {max_count} {LimitKind(kind).value}. Come back tomorrow!",
            user_id=user_id,
            kind=LimitKind(kind).value,
        )
    return count_for(get_today_limits(db, user_id, today), kind)
