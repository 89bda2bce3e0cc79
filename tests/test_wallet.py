from datetime import date
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.db import get_db
from core.errors import (
    ClaimNotEligible,
    DailyLimitReached,
    InsufficientBalance,
    InvalidAmount,
    SelfTransfer,
    install_error_handlers,
)
from models import ClaimHistory, Notification, Post, PostShare, Transaction
from routers.dependencies import get_current_user
from routers.wallet import service as wallet_service
from routers.wallet.api import router as wallet_router
from utils import wallet_ledger
from utils.ledger import TransactionType

TODAY = date(2026, 5, 10)


@pytest.fixture
def client(test_db, current_user):
    app = FastAPI()
    app.include_router(wallet_router)
    install_error_handlers(app)

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}


@pytest.fixture
def published(monkeypatch):
    publish = Mock(return_value=True)
    monkeypatch.setattr("routers.wallet.service.publish_event_sync", publish)
    return publish


def _post_by(test_db, user):
    post = Post(user_id=user.account_id, content="Swapped plastic bags for cloth ones")
    test_db.add(post)
    test_db.commit()
    test_db.refresh(post)
    return post


def _fund(test_db, user, amount):
    wallet_ledger.credit(test_db, user_id=user.account_id, amount=amount, transaction_type=TransactionType.CHECK_IN)
    test_db.commit()


# --- Ledger primitives ---


def test_transfer_moves_balance_and_records_entry(test_db, current_user, other_user):
    _fund(test_db, current_user, 1000)

    entry = wallet_ledger.transfer(
        test_db,
        sender_id=current_user.account_id,
        receiver_id=other_user.account_id,
        amount=300,
        transaction_type=TransactionType.GIFT,
    )
    test_db.commit()

    assert entry.amount == 300
    assert wallet_ledger.get_balance(test_db, current_user.account_id) == 700
    assert wallet_ledger.get_balance(test_db, other_user.account_id) == 300


@pytest.mark.parametrize("amount", [0, -5, 2.5, True])
def test_transfer_rejects_non_positive_or_fractional_amounts(test_db, current_user, other_user, amount):
    with pytest.raises(InvalidAmount):
        wallet_ledger.transfer(
            test_db,
            sender_id=current_user.account_id,
            receiver_id=other_user.account_id,
            amount=amount,
            transaction_type=TransactionType.GIFT,
        )
    assert test_db.query(Transaction).count() == 0


def test_transfer_to_self_is_rejected(test_db, current_user):
    _fund(test_db, current_user, 100)
    with pytest.raises(SelfTransfer):
        wallet_ledger.transfer(
            test_db,
            sender_id=current_user.account_id,
            receiver_id=current_user.account_id,
            amount=10,
            transaction_type=TransactionType.GIFT,
        )


def test_overdraw_fails_without_partial_effects(test_db, current_user, other_user):
    _fund(test_db, current_user, 50)

    with pytest.raises(InsufficientBalance):
        wallet_ledger.transfer(
            test_db,
            sender_id=current_user.account_id,
            receiver_id=other_user.account_id,
            amount=51,
            transaction_type=TransactionType.GIFT,
        )
    test_db.rollback()

    assert wallet_ledger.get_balance(test_db, current_user.account_id) == 50
    assert wallet_ledger.get_balance(test_db, other_user.account_id) == 0
    assert test_db.query(Transaction).count() == 1


def test_reconciliation_detects_drift(test_db, current_user, set_balance):
    _fund(test_db, current_user, 500)
    assert wallet_ledger.reconcile_balance(test_db, current_user.account_id)["in_sync"] is True

    set_balance(current_user, camly=900)
    result = wallet_ledger.reconcile_balance(test_db, current_user.account_id)
    assert result == {"currency": "camly", "stored": 900, "computed": 500, "in_sync": False}


# --- Gifts ---


def test_send_gift_commits_both_sides_and_notifies(test_db, current_user, other_user):
    _fund(test_db, current_user, 1000)

    result = wallet_service.send_gift(
        test_db, current_user=current_user, receiver_id=other_user.account_id, amount=100
    )

    assert result["camly_balance"] == 900
    assert result["message"] == "Sent 100 CAMLY!"
    assert result["transaction"]["direction"] == "sent"
    assert wallet_ledger.get_balance(test_db, other_user.account_id) == 100

    notification = test_db.query(Notification).filter(Notification.user_id == other_user.account_id).one()
    assert notification.type == "camly_gift"
    assert notification.camly_amount == 100
    assert "Lan Nguyen" in notification.message


def test_gift_endpoint_insufficient_balance(client, test_db, current_user, other_user, published):
    response = client.post("/wallet/gift", json={"receiver_id": other_user.account_id, "amount": 100})

    assert response.status_code == 400
    assert response.json()["error"] == "insufficient_balance"
    assert test_db.query(Notification).count() == 0
    published.assert_not_called()


def test_gift_endpoint_publishes_to_receiver(client, test_db, current_user, other_user, published):
    _fund(test_db, current_user, 250)

    response = client.post(
        "/wallet/gift",
        json={"receiver_id": other_user.account_id, "amount": 200, "message": "Thanks for the tips"},
    )

    assert response.status_code == 200
    assert response.json()["camly_balance"] == 50
    channel, event, payload = published.call_args.args
    assert channel == f"private-user-{other_user.account_id}"
    assert event == "notification"
    assert payload["camly_amount"] == 200


def test_gift_endpoint_unknown_recipient(client, test_db, current_user):
    _fund(test_db, current_user, 250)
    response = client.post("/wallet/gift", json={"receiver_id": 42, "amount": 10})
    assert response.status_code == 404


# --- Shares ---


def test_share_rewards_sharer_and_author(test_db, current_user, other_user):
    post = _post_by(test_db, other_user)

    result = wallet_service.share_post(test_db, current_user=current_user, post_id=post.id, today=TODAY)

    assert result["camly_earned"] == 2000
    assert result["author_bonus"] == 500
    assert result["shares_today"] == 1
    assert result["shares_remaining"] == 9
    assert wallet_ledger.get_balance(test_db, current_user.account_id) == 2000
    assert wallet_ledger.get_balance(test_db, other_user.account_id) == 500

    notifications = test_db.query(Notification).all()
    assert len(notifications) == 1
    assert notifications[0].user_id == other_user.account_id
    assert notifications[0].type == "post_shared"


def test_sharing_own_post_earns_no_author_bonus(test_db, current_user):
    post = _post_by(test_db, current_user)

    result = wallet_service.share_post(test_db, current_user=current_user, post_id=post.id, today=TODAY)

    assert result["author_bonus"] == 0
    assert wallet_ledger.get_balance(test_db, current_user.account_id) == 2000
    assert test_db.query(Notification).count() == 0


def test_share_daily_cap(test_db, current_user, other_user):
    post = _post_by(test_db, other_user)
    for _ in range(10):
        wallet_service.share_post(test_db, current_user=current_user, post_id=post.id, today=TODAY)

    with pytest.raises(DailyLimitReached):
        wallet_service.share_post(test_db, current_user=current_user, post_id=post.id, today=TODAY)
    test_db.rollback()

    assert test_db.query(PostShare).count() == 10
    assert wallet_ledger.get_balance(test_db, current_user.account_id) == 10 * 2000


def test_share_endpoint_missing_post(client):
    assert client.post("/wallet/posts/nope/share", json={}).status_code == 404


# --- NFT ---


def test_mint_nft_credits_reward(client, test_db, current_user):
    response = client.post("/wallet/nfts", json={"name": "Tree Planter #12"})
    assert response.status_code == 200
    assert response.json()["camly_earned"] == 1000
    assert wallet_ledger.get_balance(test_db, current_user.account_id) == 1000


# --- Claims ---


def test_claim_converts_whole_coins(test_db, current_user, set_balance):
    set_balance(current_user, green_points=255)

    result = wallet_service.claim(test_db, current_user=current_user, wallet_address="0xabc")

    assert result["green_points_converted"] == 250
    assert result["camly_received"] == 25
    assert result["green_points"] == 5
    assert result["total_camly_claimed"] == 25
    assert result["wallet_address"] == "0xabc"
    assert result["transaction_hash"].startswith("0x")

    claim = test_db.query(ClaimHistory).one()
    assert claim.camly_received == 25
    entry = test_db.query(Transaction).filter(Transaction.transaction_type == "claim").one()
    assert entry.currency == "green_points"
    assert entry.receiver_id is None


def test_claim_below_minimum(test_db, current_user, set_balance):
    set_balance(current_user, green_points=99)
    with pytest.raises(ClaimNotEligible):
        wallet_service.claim(test_db, current_user=current_user)
    assert test_db.query(ClaimHistory).count() == 0


def test_claim_more_than_held(test_db, current_user, set_balance):
    set_balance(current_user, green_points=150)
    with pytest.raises(InsufficientBalance):
        wallet_service.claim(test_db, current_user=current_user, points=200)


def test_claim_endpoint_and_history(client, test_db, current_user, set_balance):
    set_balance(current_user, green_points=120)

    response = client.post("/wallet/claim", json={"points": 120})
    assert response.status_code == 200
    assert response.json()["camly_received"] == 12

    claims = client.get("/wallet/claims").json()["claims"]
    assert len(claims) == 1
    assert claims[0]["green_points_converted"] == 120

    again = client.post("/wallet/claim", json={})
    assert again.status_code == 400
    assert again.json()["error"] == "claim_not_eligible"


# --- History ---


def test_transactions_and_stats_endpoints(client, test_db, current_user, other_user):
    _fund(test_db, current_user, 1000)
    wallet_service.send_gift(test_db, current_user=current_user, receiver_id=other_user.account_id, amount=300)

    sent = client.get("/wallet/transactions", params={"direction": "sent"}).json()["transactions"]
    assert [t["amount"] for t in sent] == [300]
    assert sent[0]["direction"] == "sent"

    assert len(client.get("/wallet/transactions").json()["transactions"]) == 2

    stats = client.get("/wallet/stats").json()
    assert stats == {"total_sent": 300, "total_received": 1000, "transaction_count": 2}


def test_balance_endpoint(client, test_db, current_user, set_balance):
    _fund(test_db, current_user, 400)
    set_balance(current_user, green_points=130)

    body = client.get("/wallet/balance").json()
    assert body["camly_balance"] == 400
    assert body["claimable"] == {"points": 130, "coin": 13}
    by_currency = {r["currency"]: r for r in body["reconciliation"]}
    assert by_currency["camly"]["in_sync"] is True
    # green points were seeded outside the ledger
    assert by_currency["green_points"]["in_sync"] is False
