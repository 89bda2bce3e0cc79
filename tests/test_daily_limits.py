from datetime import date, timedelta

import pytest

from core.errors import DailyLimitReached
from models import DailyLimit
from utils.daily_limits import consume_limit, count_for, get_today_limits, increment_limit, remaining
from utils.ledger import LimitKind

TODAY = date(2026, 4, 22)


def test_no_row_means_full_quota(test_db, current_user):
    limits = get_today_limits(test_db, current_user.account_id, TODAY)
    assert limits is None
    assert count_for(limits, LimitKind.SHARES) == 0
    assert remaining(limits, LimitKind.SHARES) == 10
    assert remaining(limits, LimitKind.LIKES) == 50


def test_first_increment_creates_row(test_db, current_user):
    assert increment_limit(test_db, current_user.account_id, LimitKind.SHARES, TODAY) == 1
    test_db.commit()

    limits = get_today_limits(test_db, current_user.account_id, TODAY)
    assert limits.shares_count == 1
    assert limits.likes_count == 0
    assert remaining(limits, LimitKind.SHARES, max_count=3) == 2


def test_counters_are_per_kind_and_per_day(test_db, current_user):
    increment_limit(test_db, current_user.account_id, "likes", TODAY)
    increment_limit(test_db, current_user.account_id, "likes", TODAY)
    increment_limit(test_db, current_user.account_id, "likes", TODAY + timedelta(days=1))
    test_db.commit()

    assert test_db.query(DailyLimit).count() == 2
    assert count_for(get_today_limits(test_db, current_user.account_id, TODAY), "likes") == 2
    assert count_for(get_today_limits(test_db, current_user.account_id, TODAY), "shares") == 0


def test_increment_is_advisory_past_the_cap(test_db, current_user):
    for _ in range(12):
        count = increment_limit(test_db, current_user.account_id, LimitKind.SHARES, TODAY)
    assert count == 12
    assert remaining(get_today_limits(test_db, current_user.account_id, TODAY), LimitKind.SHARES) == 0


def test_consume_limit_stops_at_cap(test_db, current_user):
    for expected in range(1, 11):
        assert consume_limit(test_db, current_user.account_id, LimitKind.SHARES, TODAY) == expected

    with pytest.raises(DailyLimitReached) as exc:
        consume_limit(test_db, current_user.account_id, LimitKind.SHARES, TODAY)

    assert exc.value.status_code == 429
    assert "10" in exc.value.message
    assert count_for(get_today_limits(test_db, current_user.account_id, TODAY), LimitKind.SHARES) == 10
