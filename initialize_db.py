"""
Script to initialize database tables and the starter learning content.
Run this script after setting up your database connection.

Usage:
    python initialize_db.py
"""

import logging

from core.config import ENVIRONMENT, LOG_LEVEL
from core.db import create_tables, get_db_context
from core.logging import configure_logging
from models import EducationalContent

logger = logging.getLogger(__name__)

STARTER_CONTENT = [
    {"title": "Which bin does it go in? A colour guide", "content_type": "infographic", "points_reward": 10},
    {"title": "Why glass is endlessly recyclable", "content_type": "article", "points_reward": 10},
    {"title": "Composting kitchen scraps at home", "content_type": "video", "points_reward": 20},
    {"title": "Batteries and e-waste: handle with care", "content_type": "article", "points_reward": 15},
]


def seed_educational_content(db) -> int:
    """Add the starter content when the table is empty. Returns how many rows were added."""
    if db.query(EducationalContent).count() > 0:
        return 0
    db.add_all([EducationalContent(**item) for item in STARTER_CONTENT])
    db.commit()
    return len(STARTER_CONTENT)


def init_db():
    """Initialize database tables and default data"""
    create_tables()
    with get_db_context() as db:
        added = seed_educational_content(db)
    logger.info(f"Database initialized, {added} content items added")


if __name__ == "__main__":
    configure_logging(environment=ENVIRONMENT, log_level=LOG_LEVEL)
    init_db()
