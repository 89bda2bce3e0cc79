from initialize_db import STARTER_CONTENT, seed_educational_content
from models import EducationalContent


def test_seed_only_fills_an_empty_table(test_db):
    assert seed_educational_content(test_db) == len(STARTER_CONTENT)
    assert seed_educational_content(test_db) == 0

    content = test_db.query(EducationalContent).all()
    assert len(content) == len(STARTER_CONTENT)
    assert all(item.is_published and item.points_reward > 0 for item in content)
