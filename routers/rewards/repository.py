"""Rewards domain repository layer."""

from sqlalchemy.orm import Session

from core.db import upsert_insert


def get_content(db: Session, *, content_id: str):
    from models import EducationalContent

    return (
        db.query(EducationalContent)
        .filter(EducationalContent.id == content_id, EducationalContent.is_published.is_(True))
        .first()
    )


def insert_content_view_if_absent(db: Session, *, user_id: int, content_id: str, points_earned: int) -> bool:
    """True when this call created the (user, content) view; False when it already existed."""
    from models import ContentView

    stmt = (
        upsert_insert(db, ContentView)
        .values(user_id=user_id, content_id=content_id, points_earned=points_earned)
        .on_conflict_do_nothing(index_elements=["user_id", "content_id"])
    )
    return db.execute(stmt).rowcount == 1


def bump_content_view_count(db: Session, *, content_id: str) -> None:
    from models import EducationalContent

    db.query(EducationalContent).filter(EducationalContent.id == content_id).update(
        {EducationalContent.view_count: EducationalContent.view_count + 1},
        synchronize_session=False,
    )


def list_viewed_content_ids(db: Session, *, user_id: int) -> list:
    from models import ContentView

    rows = db.query(ContentView.content_id).filter(ContentView.user_id == user_id).all()
    return [row[0] for row in rows]
