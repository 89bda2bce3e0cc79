"""
Camly Transaction Ledger

Every balance change is one immutable Transaction row plus one atomic
`balance = balance + delta` UPDATE executed in the caller's DB transaction.
Application code never writes an absolute balance it read earlier.
"""
import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from core.errors import InsufficientBalance, InvalidAmount, SelfTransfer
from models import Transaction, User
from utils.ledger import Currency

logger = logging.getLogger(__name__)


def _balance_column(currency):
    currency = Currency(currency)
    if currency == Currency.GREEN_POINTS:
        return User.green_points
    return User.camly_balance


def validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount=amount)
    return amount


def apply_balance_delta(
    db: Session,
    user_id: int,
    delta: int,
    currency: str = Currency.CAMLY,
    require_funds: bool = False,
) -> None:
    """
    Atomically add `delta` to the user's balance column.

    With `require_funds` the UPDATE only matches while the balance covers the
    debit, so two concurrent debits can never overdraw the account.
    """
    column = _balance_column(currency)
    query = db.query(User).filter(User.account_id == user_id)
    if require_funds:
        query = query.filter(column >= -delta)

    updated = query.update({column: column + delta}, synchronize_session=False)
    if updated == 0:
        if require_funds:
            raise InsufficientBalance(user_id=user_id, currency=str(Currency(currency).value), amount=-delta)
        raise ValueError(f"Profile {user_id} not found")


def append_entry(
    db: Session,
    *,
    sender_id: Optional[int],
    receiver_id: Optional[int],
    amount: int,
    transaction_type: str,
    currency: str = Currency.CAMLY,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    description: Optional[str] = None,
) -> Transaction:
    """Insert a ledger row without touching balances (the caller already applied the delta)."""
    entry = Transaction(
        sender_id=sender_id,
        receiver_id=receiver_id,
        amount=validate_amount(amount),
        transaction_type=getattr(transaction_type, "value", transaction_type),
        currency=Currency(currency).value,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        description=description,
    )
    db.add(entry)
    db.flush()
    return entry


def transfer(
    db: Session,
    *,
    sender_id: Optional[int],
    receiver_id: Optional[int],
    amount: int,
    transaction_type: str,
    currency: str = Currency.CAMLY,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    description: Optional[str] = None,
) -> Transaction:
    """
    Move value between accounts and record it.

    - sender_id None: system reward, pure credit.
    - receiver_id None: burn (e.g. green points converted by a claim).
    - both set: peer transfer; debit and credit share the caller's transaction,
      so either both land on commit or neither does.

    Raises:
        InvalidAmount: amount is not a positive integer
        SelfTransfer: sender and receiver are the same account
        InsufficientBalance: sender balance does not cover the amount
    """
    validate_amount(amount)
    if sender_id is None and receiver_id is None:
        raise ValueError("transfer needs a sender or a receiver")
    if sender_id is not None and sender_id == receiver_id:
        raise SelfTransfer(user_id=sender_id)

    if sender_id is not None:
        apply_balance_delta(db, sender_id, -amount, currency, require_funds=True)
    if receiver_id is not None:
        apply_balance_delta(db, receiver_id, amount, currency)

    entry = append_entry(
        db,
        sender_id=sender_id,
        receiver_id=receiver_id,
        amount=amount,
        transaction_type=transaction_type,
        currency=currency,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
    )

    logger.info(
        f"Ledger entry created: id={entry.id}, type={entry.transaction_type}, "
        f"currency={entry.currency}, amount={amount}, sender={sender_id}, receiver={receiver_id}"
    )
    return entry


def credit(db: Session, *, user_id: int, amount: int, transaction_type: str, **kwargs) -> Transaction:
    return transfer(db, sender_id=None, receiver_id=user_id, amount=amount, transaction_type=transaction_type, **kwargs)


def debit(db: Session, *, user_id: int, amount: int, transaction_type: str, **kwargs) -> Transaction:
    return transfer(db, sender_id=user_id, receiver_id=None, amount=amount, transaction_type=transaction_type, **kwargs)


def get_balance(db: Session, user_id: int, currency: str = Currency.CAMLY) -> int:
    balance = db.query(_balance_column(currency)).filter(User.account_id == user_id).scalar()
    return balance or 0


def recalculate_balance(db: Session, user_id: int, currency: str = Currency.CAMLY) -> int:
    """Balance implied by the ledger: everything received minus everything sent."""
    currency = Currency(currency).value
    received = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.receiver_id == user_id,
        Transaction.currency == currency,
    ).scalar()
    sent = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.sender_id == user_id,
        Transaction.currency == currency,
    ).scalar()
    return int(received) - int(sent)


def reconcile_balance(db: Session, user_id: int, currency: str = Currency.CAMLY) -> dict:
    stored = get_balance(db, user_id, currency)
    computed = recalculate_balance(db, user_id, currency)
    if stored != computed:
        logger.warning(
            f"Balance drift for user={user_id} currency={Currency(currency).value}: "
            f"stored={stored} ledger={computed}"
        )
    return {
        "currency": Currency(currency).value,
        "stored": stored,
        "computed": computed,
        "in_sync": stored == computed,
    }


def get_ledger_entries(
    db: Session,
    user_id: int,
    direction: str = "all",
    currency: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list:
    """Transactions touching the user, newest first. direction: all | sent | received."""
    query = db.query(Transaction)
    if direction == "sent":
        query = query.filter(Transaction.sender_id == user_id)
    elif direction == "received":
        query = query.filter(Transaction.receiver_id == user_id)
    else:
        query = query.filter(or_(Transaction.sender_id == user_id, Transaction.receiver_id == user_id))

    if currency:
        query = query.filter(Transaction.currency == Currency(currency).value)

    return query.order_by(Transaction.created_at.desc()).offset(offset).limit(limit).all()


def get_transaction_stats(db: Session, user_id: int, currency: str = Currency.CAMLY) -> dict:
    currency = Currency(currency).value
    total_sent = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.sender_id == user_id, Transaction.currency == currency
    ).scalar()
    total_received = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.receiver_id == user_id, Transaction.currency == currency
    ).scalar()
    transaction_count = db.query(func.count(Transaction.id)).filter(
        Transaction.currency == currency,
        or_(Transaction.sender_id == user_id, Transaction.receiver_id == user_id),
    ).scalar()
    return {
        "total_sent": int(total_sent),
        "total_received": int(total_received),
        "transaction_count": int(transaction_count or 0),
    }
