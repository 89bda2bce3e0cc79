"""
Camly economy constants and pure conversion helpers.

Every reward-granting operation looks its amount up here; nothing else hardcodes one.
"""
import secrets
from enum import Enum
from typing import NamedTuple

GREEN_POINTS_PER_CAMLY = 10
MINIMUM_CLAIM_POINTS = 100


class ActionType(str, Enum):
    DAILY_CHECK_IN = "daily_check_in"
    STREAK_7_DAY_BONUS = "streak_7_day_bonus"
    SHARE_POST = "share_post"
    SHARED_POST_BONUS = "shared_post_bonus"
    NFT_MINT = "nft_mint"
    WASTE_SCAN = "waste_scan"


class TransactionType(str, Enum):
    GIFT = "gift"
    SHARE_BONUS = "share_bonus"
    NFT_MINT = "nft_mint"
    SCAN_REWARD = "scan_reward"
    CHECK_IN = "check_in"
    STREAK_BONUS = "streak_bonus"
    CONTENT_VIEW = "content_view"
    CLAIM = "claim"


class Currency(str, Enum):
    CAMLY = "camly"
    GREEN_POINTS = "green_points"


class LimitKind(str, Enum):
    SHARES = "shares"
    LIKES = "likes"


REWARDS = {
    ActionType.DAILY_CHECK_IN: 500,
    ActionType.STREAK_7_DAY_BONUS: 2000,
    ActionType.SHARE_POST: 2000,
    ActionType.SHARED_POST_BONUS: 500,
    ActionType.NFT_MINT: 1000,
    ActionType.WASTE_SCAN: 50,
}

DAILY_LIMITS = {
    LimitKind.SHARES: 10,
    LimitKind.LIKES: 50,
}

STREAK_BONUS_EVERY_DAYS = 7


class ClaimableAmount(NamedTuple):
    points: int
    coin: int


def reward_for(action) -> int:
    return REWARDS[ActionType(action)]


def daily_limit_for(kind) -> int:
    return DAILY_LIMITS[LimitKind(kind)]


def points_to_coin(points: int) -> int:
    """Floor-convert green points to camly. Negative input is the caller's bug and is not clamped."""
    return points // GREEN_POINTS_PER_CAMLY


def is_claim_eligible(points: int) -> bool:
    return points >= MINIMUM_CLAIM_POINTS


def claimable_amount(points: int) -> ClaimableAmount:
    """
    Points that can be claimed right now and the coin they convert to.

    The remainder below one full coin stays on the account for a later claim.
    """
    if not is_claim_eligible(points):
        return ClaimableAmount(points=0, coin=0)
    coin = points_to_coin(points)
    return ClaimableAmount(points=coin * GREEN_POINTS_PER_CAMLY, coin=coin)


def streak_bonus_applies(streak: int) -> bool:
    return streak > 0 and streak % STREAK_BONUS_EVERY_DAYS == 0


def format_camly(amount: int) -> str:
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{amount / 1_000:.1f}K"
    return f"{amount:,}"


_ACTION_LABELS = {
    "en": {
        ActionType.DAILY_CHECK_IN: "check-in",
        ActionType.STREAK_7_DAY_BONUS: "7-day streak",
        ActionType.SHARE_POST: "sharing",
        ActionType.SHARED_POST_BONUS: "your post being shared",
        ActionType.NFT_MINT: "minting NFT",
        ActionType.WASTE_SCAN: "scanning waste",
    },
    "vi": {
        ActionType.DAILY_CHECK_IN: "điểm danh",
        ActionType.STREAK_7_DAY_BONUS: "streak 7 ngày",
        ActionType.SHARE_POST: "chia sẻ",
        ActionType.SHARED_POST_BONUS: "bài viết được chia sẻ",
        ActionType.NFT_MINT: "đúc NFT",
        ActionType.WASTE_SCAN: "quét rác",
    },
}


def action_label(action, language: str = "en") -> str:
    """Display name for an action; unknown actions show their raw key."""
    labels = _ACTION_LABELS.get(language, _ACTION_LABELS["en"])
    try:
        return labels[ActionType(action)]
    except (KeyError, ValueError):
        return str(action)


def format_earned_message(amount: int, action, language: str = "en") -> str:
    """User-facing toast naming the exact amount credited, e.g. `+2.0K Camly from sharing`."""
    label = action_label(action, language)
    if language == "vi":
        return f"+{format_camly(amount)} Camly từ {label}"
    return f"+{format_camly(amount)} Camly from {label}"


def mock_transaction_hash() -> str:
    # Claims settle off-chain until the wallet bridge lands; keep the on-chain hash shape.
    return "0x" + secrets.token_hex(32)
