import re

import pytest

from utils.ledger import (
    ActionType,
    LimitKind,
    claimable_amount,
    daily_limit_for,
    format_camly,
    format_earned_message,
    is_claim_eligible,
    mock_transaction_hash,
    points_to_coin,
    reward_for,
    streak_bonus_applies,
)


def test_reward_table_amounts():
    assert reward_for(ActionType.DAILY_CHECK_IN) == 500
    assert reward_for("streak_7_day_bonus") == 2000
    assert reward_for(ActionType.SHARE_POST) == 2000
    assert reward_for(ActionType.SHARED_POST_BONUS) == 500
    assert reward_for(ActionType.WASTE_SCAN) == 50
    assert daily_limit_for(LimitKind.SHARES) == 10
    assert daily_limit_for("likes") == 50


def test_unknown_action_is_rejected():
    with pytest.raises(ValueError):
        reward_for("teleport")


@pytest.mark.parametrize("points", [0, 1, 9, 10, 99, 100, 101, 250, 9999])
def test_points_to_coin_floors_and_never_exceeds_points(points):
    coin = points_to_coin(points)
    assert coin * 10 <= points
    assert points - coin * 10 < 10


def test_claim_eligibility_threshold():
    assert not is_claim_eligible(99)
    assert is_claim_eligible(100)
    assert claimable_amount(99) == (0, 0)
    assert claimable_amount(100) == (100, 10)


def test_claimable_amount_keeps_remainder():
    claimable = claimable_amount(255)
    assert claimable.points == 250
    assert claimable.coin == 25


def test_streak_bonus_every_seventh_day():
    assert [d for d in range(0, 22) if streak_bonus_applies(d)] == [7, 14, 21]


def test_format_camly():
    assert format_camly(500) == "500"
    assert format_camly(2500) == "2.5K"
    assert format_camly(1_200_000) == "1.2M"


def test_format_earned_message_names_amount_and_action():
    assert format_earned_message(500, ActionType.DAILY_CHECK_IN) == "+500 Camly from check-in"
    assert format_earned_message(2000, ActionType.SHARE_POST) == "+2.0K Camly from sharing"
    assert format_earned_message(50, ActionType.WASTE_SCAN, language="vi") == "+50 Camly từ quét rác"
    # unknown languages fall back to English
    assert format_earned_message(50, ActionType.WASTE_SCAN, language="fr") == "+50 Camly from scanning waste"


def test_format_earned_message_unknown_action_shows_key():
    assert format_earned_message(300, "plant_tree") == "+300 Camly from plant_tree"


def test_reward_table_only_holds_granted_actions():
    assert {action.value for action in ActionType} == {
        "daily_check_in",
        "streak_7_day_bonus",
        "share_post",
        "shared_post_bonus",
        "nft_mint",
        "waste_scan",
    }
    assert all(reward_for(action) > 0 for action in ActionType)


def test_mock_transaction_hash_shape():
    first, second = mock_transaction_hash(), mock_transaction_hash()
    assert re.fullmatch(r"0x[0-9a-f]{64}", first)
    assert first != second
