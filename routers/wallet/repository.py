"""Wallet domain repository layer."""

from sqlalchemy.orm import Session


def get_post(db: Session, *, post_id: str):
    from models import Post

    return db.query(Post).filter(Post.id == post_id).first()


def create_post_share(db: Session, *, post_id: str, shared_by: int, caption, visibility: str, camly_earned: int):
    from models import PostShare

    share = PostShare(
        original_post_id=post_id,
        shared_by=shared_by,
        share_caption=caption,
        visibility=visibility,
        camly_earned=camly_earned,
    )
    db.add(share)
    db.flush()
    return share


def create_nft(db: Session, *, owner_id: int, name: str, image_url):
    from models import GreenNft

    nft = GreenNft(owner_id=owner_id, name=name, image_url=image_url)
    db.add(nft)
    db.flush()
    return nft


def create_claim(
    db: Session,
    *,
    user_id: int,
    green_points_converted: int,
    camly_received: int,
    transaction_hash: str,
    wallet_address,
    status: str = "completed",
):
    from models import ClaimHistory

    claim = ClaimHistory(
        user_id=user_id,
        green_points_converted=green_points_converted,
        camly_received=camly_received,
        transaction_hash=transaction_hash,
        wallet_address=wallet_address,
        status=status,
    )
    db.add(claim)
    db.flush()
    return claim


def list_claims(db: Session, *, user_id: int, limit: int):
    from models import ClaimHistory

    return (
        db.query(ClaimHistory)
        .filter(ClaimHistory.user_id == user_id)
        .order_by(ClaimHistory.created_at.desc())
        .limit(limit)
        .all()
    )
