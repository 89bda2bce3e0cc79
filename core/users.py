"""Profile lookup facade.

Domains should not query the `User` model directly. Call these helpers and pass
`account_id` around where possible.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session


def get_user_by_id(db: Session, *, account_id: int):
    from models import User

    return db.query(User).filter(User.account_id == account_id).first()


def get_user_by_auth_id(db: Session, *, auth_user_id: str):
    from models import User

    return db.query(User).filter(User.auth_user_id == auth_user_id).first()


def require_user(db: Session, *, account_id: int, detail: str = "User not found"):
    user = get_user_by_id(db, account_id=account_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return user


def create_profile(
    db: Session,
    *,
    auth_user_id: str,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    avatar_url: Optional[str] = None,
):
    from models import User

    user = User(
        auth_user_id=auth_user_id,
        email=email,
        full_name=full_name,
        avatar_url=avatar_url,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def display_name(user) -> str:
    if user is None:
        return "Someone"
    return user.full_name or (user.email.split("@")[0] if user.email else f"user-{user.account_id}")


def record_check_in(db: Session, *, account_id: int, today, new_streak: int, reward: int) -> bool:
    """
    Apply a check-in in one guarded UPDATE: credit, streak and date move together,
    and only when the profile has not checked in on `today` yet.
    """
    from sqlalchemy import or_

    from models import User

    updated = (
        db.query(User)
        .filter(
            User.account_id == account_id,
            or_(User.last_check_in.is_(None), User.last_check_in != today),
        )
        .update(
            {
                User.camly_balance: User.camly_balance + reward,
                User.current_streak: new_streak,
                User.last_check_in: today,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def add_claimed_camly(db: Session, *, account_id: int, amount: int) -> None:
    from models import User

    db.query(User).filter(User.account_id == account_id).update(
        {User.total_camly_claimed: User.total_camly_claimed + amount},
        synchronize_session=False,
    )
