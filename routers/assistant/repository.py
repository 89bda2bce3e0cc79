"""Assistant domain repository layer."""

from sqlalchemy import func
from sqlalchemy.orm import Session


def create_scan(db: Session, *, user_id: int, image_url, result: dict, points_earned: int):
    from models import WasteScan

    scan = WasteScan(
        user_id=user_id,
        image_url=image_url,
        waste_type=result["waste_type"],
        waste_type_vi=result.get("waste_type_vi"),
        material=result.get("material"),
        recyclable=result.get("recyclable", False),
        bin_color=result["bin_color"],
        disposal_instructions=result.get("disposal_instructions"),
        confidence=result["confidence"],
        points_earned=points_earned,
    )
    db.add(scan)
    db.flush()
    return scan


def list_scans(db: Session, *, user_id: int, limit: int):
    from models import WasteScan

    return (
        db.query(WasteScan)
        .filter(WasteScan.user_id == user_id)
        .order_by(WasteScan.scanned_at.desc())
        .limit(limit)
        .all()
    )


def scan_stats(db: Session, *, user_id: int) -> dict:
    from models import WasteScan

    total_scans, total_points, unique_types = (
        db.query(
            func.count(WasteScan.id),
            func.coalesce(func.sum(WasteScan.points_earned), 0),
            func.count(func.distinct(WasteScan.waste_type)),
        )
        .filter(WasteScan.user_id == user_id)
        .one()
    )
    return {
        "total_scans": int(total_scans or 0),
        "total_points": int(total_points or 0),
        "unique_types": int(unique_types or 0),
    }
